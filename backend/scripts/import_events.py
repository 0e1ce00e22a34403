import argparse

from loguru import logger

from app.db import init_db
from ingestion.service import import_events, load_raw_events


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import events from a JSON file of raw submissions")
    parser.add_argument("path", help="JSON file containing an event or a list of events")
    parser.add_argument("--limit", type=int, default=None, help="Import at most N events")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and report without writing to the database.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    raw_events = load_raw_events(args.path)
    logger.info("Loaded {} raw events from {}", len(raw_events), args.path)

    if not args.dry_run:
        init_db()

    report = import_events(raw_events, dry_run=args.dry_run, limit=args.limit)
    if report.event_ids:
        logger.info("New event ids: {}", ", ".join(report.event_ids))
    return 1 if report.rejected and not report.imported else 0


if __name__ == "__main__":
    raise SystemExit(main())
