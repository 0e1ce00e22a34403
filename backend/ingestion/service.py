from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.db import session_scope
from app.domain import NormalizedEvent, ValidationError
from app.repositories import EventRepository

from .normalize import normalize_event


@dataclass(slots=True)
class ImportReport:
    imported: int = 0
    rejected: int = 0
    event_ids: list[str] = field(default_factory=list)
    errors: list[tuple[int, str]] = field(default_factory=list)


def load_raw_events(path: str | Path) -> list[dict[str, Any]]:
    """Read a JSON file holding either one submission or a list of them."""

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, Mapping):
        payload = payload.get("events", [payload])
    if not isinstance(payload, list):
        raise ValueError(f"{path} does not contain a list of events")
    return [item for item in payload if isinstance(item, Mapping)]


def import_events(
    raw_events: Iterable[Mapping[str, Any]],
    *,
    dry_run: bool = False,
    limit: int | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> ImportReport:
    """Normalize raw event submissions and persist the valid ones in one unit of work."""

    report = ImportReport()
    accepted: list[NormalizedEvent] = []
    for index, raw_event in enumerate(raw_events, start=1):
        if limit and index > limit:
            break
        try:
            accepted.append(normalize_event(raw_event, max_ticket_types=settings.max_ticket_types))
        except ValidationError as exc:
            report.rejected += 1
            report.errors.append((index, exc.message))
            logger.warning("Rejected event #{}: {}", index, exc.message)

    if dry_run:
        report.imported = len(accepted)
        logger.info("Dry run: {} events valid, {} rejected", report.imported, report.rejected)
        return report

    with session_scope(session_factory) as session:
        repo = EventRepository(session)
        for event in accepted:
            record = repo.create_event(event)
            report.event_ids.append(record.event_id)
    report.imported = len(report.event_ids)
    logger.info("Imported {} events, rejected {}", report.imported, report.rejected)
    return report


__all__ = ["ImportReport", "import_events", "load_raw_events"]
