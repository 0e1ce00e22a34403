from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.domain import ValidationError
from ingestion.normalize import normalize_event, normalize_event_update


def test_normalize_event(sample_event_payload):
    event = normalize_event(sample_event_payload)

    assert event.title == "Harbour Lights Festival"
    assert event.organiser == "Harbour Events"
    assert event.image_url == "https://img.example.test/harbour.png"
    assert event.event_date == datetime(2030, 7, 14, 19, 30, tzinfo=timezone.utc)
    assert [(t.ticket_type_id, t.name, t.price, t.available) for t in event.ticket_types] == [
        ("option_1", "Early Bird", Decimal("50.00"), 100),
        ("vip", "VIP", Decimal("120.50"), 1),
    ]
    assert event.ticket_types[0].description == "Limited release"


def test_normalize_event_requires_title(sample_event_payload):
    sample_event_payload["title"] = "   "

    with pytest.raises(ValidationError, match="Event title is required"):
        normalize_event(sample_event_payload)


def test_normalize_event_respects_configured_limit(sample_event_payload):
    with pytest.raises(ValidationError, match="Maximum 1 pricing options allowed"):
        normalize_event(sample_event_payload, max_ticket_types=1)


def test_update_without_pricing_leaves_pricing_untouched():
    update = normalize_event_update({"location": " Dock 9 ", "category": ""})

    assert update.ticket_types is None
    assert update.fields == {"location": "Dock 9", "category": None}


def test_update_with_pricing_replaces_whole_set():
    update = normalize_event_update({"vipPrice": "150", "vipAvailable": "10"})

    assert update.fields == {}
    assert [(t.ticket_type_id, t.price) for t in update.ticket_types] == [
        ("vip", Decimal("150.00"))
    ]


def test_update_rejects_blank_title():
    with pytest.raises(ValidationError, match="Event title cannot be blank"):
        normalize_event_update({"title": "  "})


def test_update_parses_event_date():
    update = normalize_event_update({"eventDate": "2031-01-02T10:00:00+02:00"})

    assert update.fields["event_date"] == datetime(2031, 1, 2, 8, 0, tzinfo=timezone.utc)
