from __future__ import annotations

from decimal import Decimal

import pytest

from app.domain import NotFoundError, ValidationError
from app.services.event_service import EventService


@pytest.fixture
def notices():
    return []


@pytest.fixture
def service(session, notices):
    return EventService(session, publisher=notices.append)


def test_create_event_publishes_notice(service, notices, sample_event_payload):
    created = service.create_event(sample_event_payload)

    event = created.event
    assert event.title == "Harbour Lights Festival"
    assert [t.ticket_type_id for t in event.ticket_types] == ["option_1", "vip"]
    assert event.total_available == 101
    assert event.price_range.min == Decimal("50.00")
    assert event.price_range.max == Decimal("120.50")

    (notice,) = notices
    assert notice.kind == "event.created"
    assert notice.event_id == event.event_id
    assert notice.ticket_type_count == 2
    assert notice.message == (
        "A new event Harbour Lights Festival has been created with 2 ticket options!"
    )
    assert created.notification.kind == "event.created"


def test_invalid_event_is_not_persisted(service, notices):
    with pytest.raises(ValidationError):
        service.create_event({"title": "No pricing"})

    assert notices == []


def test_update_event_replaces_pricing(service, notices, sample_event_payload):
    event_id = service.create_event(sample_event_payload).event.event_id

    updated = service.update_event(
        event_id,
        {
            "location": "Dock 9",
            "pricingOptions": [
                {"id": "vip", "name": "VIP", "price": "150", "available": 4},
                {"id": "balcony", "name": "Balcony", "price": "30", "available": 40},
            ],
        },
    )

    assert updated.location == "Dock 9"
    assert [(t.ticket_type_id, t.price, t.available) for t in updated.ticket_types] == [
        ("vip", Decimal("150.00"), 4),
        ("balcony", Decimal("30.00"), 40),
    ]
    assert notices[-1].kind == "event.updated"
    assert service.get_event(event_id).total_available == 44


def test_update_without_pricing_keeps_ticket_types(service, sample_event_payload):
    event_id = service.create_event(sample_event_payload).event.event_id

    updated = service.update_event(event_id, {"description": "Moved indoors"})

    assert updated.description == "Moved indoors"
    assert len(updated.ticket_types) == 2


def test_failing_publisher_does_not_undo_create(session, sample_event_payload):
    def explode(notice):
        raise RuntimeError("broker unavailable")

    created = EventService(session, publisher=explode).create_event(sample_event_payload)

    assert EventService(session).get_event(created.event.event_id).title == created.event.title


def test_delete_event(service, sample_event_payload):
    event_id = service.create_event(sample_event_payload).event.event_id

    service.delete_event(event_id)

    with pytest.raises(NotFoundError):
        service.get_event(event_id)
    with pytest.raises(NotFoundError):
        service.delete_event(event_id)


def test_featured_events_are_ordered_by_date(service, sample_event_payload):
    later = service.create_event(sample_event_payload).event.event_id
    sooner = service.create_event(
        {"title": "Jazz Night", "date": "2030-01-05", "regularPrice": "15", "regularAvailable": 80}
    ).event.event_id
    undated = service.create_event(
        {"title": "Pop-up Market", "regularPrice": "0", "regularAvailable": 500}
    ).event.event_id

    featured = service.featured_events()

    assert [event.event_id for event in featured] == [sooner, later, undated]
    assert featured[1].price_range.min == Decimal("50.00")
    assert featured[1].price_range.max == Decimal("120.50")
    assert [t.ticket_type_id for t in featured[0].ticket_types] == ["regular"]
    assert [event.event_id for event in service.featured_events(limit=2)] == [sooner, later]
