"""Event catalogue and pricing persistence."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.domain import EventUpdate, NormalizedEvent, TicketTypeSpec
from app.models import Event, TicketType


class EventRepository:
    """Encapsulate event and ticket type persistence concerns."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def create_event(self, event: NormalizedEvent, *, event_id: str | None = None) -> Event:
        record = Event(
            event_id=event_id or str(uuid4()),
            title=event.title,
            location=event.location,
            address=event.address,
            category=event.category,
            description=event.description,
            organiser=event.organiser,
            image_url=event.image_url,
            event_date=event.event_date,
        )
        self._session.add(record)
        self.replace_pricing(record, event.ticket_types)
        self._session.flush()
        return record

    def apply_update(self, record: Event, update: EventUpdate) -> Event:
        for field_name, value in update.fields.items():
            setattr(record, field_name, value)
        if update.ticket_types is not None:
            self.replace_pricing(record, update.ticket_types)
        self._session.flush()
        return record

    def replace_pricing(self, record: Event, ticket_types: Sequence[TicketTypeSpec]) -> None:
        """Replace the whole pricing set, keeping rows whose ids survive.

        Not safe against in-flight purchases of the same event; callers
        serialize administrative updates themselves.
        """

        existing = {row.ticket_type_id: row for row in record.ticket_types}
        rows: list[TicketType] = []
        for position, spec in enumerate(ticket_types):
            row = existing.pop(spec.ticket_type_id, None)
            if row is None:
                row = TicketType(ticket_type_id=spec.ticket_type_id)
            row.position = position
            row.name = spec.name
            row.price = spec.price
            row.available = spec.available
            row.description = spec.description
            rows.append(row)
        # Rows left in ``existing`` are orphaned and deleted on flush.
        record.ticket_types = rows

    def delete_event(self, event_id: str) -> bool:
        record = self.get_event(event_id)
        if record is None:
            return False
        self._session.delete(record)
        self._session.flush()
        return True

    # ------------------------------------------------------------------
    # Queries

    def get_event(self, event_id: str) -> Event | None:
        query = (
            select(Event)
            .options(selectinload(Event.ticket_types))
            .where(Event.event_id == event_id)
        )
        return self._session.execute(query).scalar_one_or_none()

    def get_events(self, event_ids: Iterable[str]) -> dict[str, Event]:
        ids = sorted({event_id for event_id in event_ids if event_id})
        if not ids:
            return {}
        rows = self._session.execute(select(Event).where(Event.event_id.in_(ids))).scalars().all()
        return {row.event_id: row for row in rows}

    def list_events(self, limit: int) -> list[Event]:
        """Return up to ``limit`` events, soonest first; undated events go last."""

        query = (
            select(Event)
            .options(selectinload(Event.ticket_types))
            .order_by(Event.event_date.asc().nulls_last(), Event.created_at, Event.event_id)
            .limit(limit)
        )
        return list(self._session.execute(query).scalars())


__all__ = ["EventRepository"]
