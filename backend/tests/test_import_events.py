from __future__ import annotations

import json

from app.repositories import EventRepository
from ingestion.service import import_events, load_raw_events


def _raw_events(sample_event_payload):
    return [
        sample_event_payload,
        {"title": "No pricing at all"},
        {"name": "Jazz Night", "regularPrice": "15", "regularAvailable": "80"},
    ]


def test_import_events_persists_valid_and_counts_rejected(
    session_factory, sample_event_payload
):
    report = import_events(_raw_events(sample_event_payload), session_factory=session_factory)

    assert report.imported == 2
    assert report.rejected == 1
    assert report.errors == [(2, "At least one pricing option is required")]

    with session_factory() as session:
        titles = sorted(
            EventRepository(session).get_event(event_id).title for event_id in report.event_ids
        )
    assert titles == ["Harbour Lights Festival", "Jazz Night"]


def test_import_events_dry_run_writes_nothing(session_factory, sample_event_payload):
    report = import_events(
        _raw_events(sample_event_payload), dry_run=True, session_factory=session_factory
    )

    assert report.imported == 2
    assert report.event_ids == []


def test_import_events_limit(session_factory, sample_event_payload):
    report = import_events(
        _raw_events(sample_event_payload), limit=1, session_factory=session_factory
    )

    assert report.imported == 1
    assert report.rejected == 0


def test_load_raw_events_accepts_single_object(tmp_path, sample_event_payload):
    path = tmp_path / "events.json"
    path.write_text(json.dumps(sample_event_payload), encoding="utf-8")

    assert load_raw_events(path) == [sample_event_payload]
