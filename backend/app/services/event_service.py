"""Event catalogue operations: create, update, read, list, delete."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from loguru import logger
from sqlalchemy.orm import Session

from app.core.config import settings
from app.domain import EventNotice, NotFoundError
from app.models import Event, utcnow
from app.repositories import EventRepository
from app.schemas import EventCreated, EventDetail, EventNotification, PriceRange
from ingestion.normalize import normalize_event, normalize_event_update

NoticePublisher = Callable[[EventNotice], None]


def log_notice(notice: EventNotice) -> None:
    """Default publisher: write the notice to the application log."""

    logger.info("[{}] {} ({})", notice.kind, notice.message, notice.event_id)


class EventService:
    """Persist normalized events and announce their changes."""

    def __init__(
        self,
        session: Session,
        *,
        publisher: NoticePublisher | None = None,
        max_ticket_types: int | None = None,
    ) -> None:
        self._session = session
        self._repo = EventRepository(session)
        self._publisher = publisher or log_notice
        self._max_ticket_types = max_ticket_types or settings.max_ticket_types

    def create_event(self, raw_event: Mapping[str, Any]) -> EventCreated:
        normalized = normalize_event(raw_event, max_ticket_types=self._max_ticket_types)
        record = self._repo.create_event(normalized)
        self._session.commit()

        count = len(record.ticket_types)
        logger.info("Created event {} with {} ticket type(s)", record.event_id, count)
        notice = EventNotice(
            kind="event.created",
            event_id=record.event_id,
            title=record.title,
            message=(
                f"A new event {record.title} has been created with "
                f"{count} ticket option{'s' if count != 1 else ''}!"
            ),
            ticket_type_count=count,
            created_at=utcnow(),
        )
        self._publish(notice)
        return EventCreated(
            event=self._to_detail(record),
            notification=EventNotification.model_validate(notice),
        )

    def update_event(self, event_id: str, raw_update: Mapping[str, Any]) -> EventDetail:
        record = self._require(event_id)
        update = normalize_event_update(raw_update, max_ticket_types=self._max_ticket_types)
        self._repo.apply_update(record, update)
        self._session.commit()

        logger.info(
            "Updated event {} (fields={}, pricing replaced={})",
            event_id,
            sorted(update.fields),
            update.ticket_types is not None,
        )
        self._publish(
            EventNotice(
                kind="event.updated",
                event_id=record.event_id,
                title=record.title,
                message=f"The event {record.title} has been updated.",
                ticket_type_count=len(record.ticket_types),
                created_at=utcnow(),
            )
        )
        return self._to_detail(record)

    def get_event(self, event_id: str) -> EventDetail:
        return self._to_detail(self._require(event_id))

    def featured_events(self, limit: int | None = None) -> list[EventDetail]:
        """Upcoming events in date order, each with its pricing and price range."""

        records = self._repo.list_events(limit or settings.featured_events_limit)
        return [self._to_detail(record) for record in records]

    def delete_event(self, event_id: str) -> None:
        if not self._repo.delete_event(event_id):
            raise NotFoundError("Event not found.", details={"event_id": event_id})
        self._session.commit()
        logger.info("Deleted event {}", event_id)

    def _require(self, event_id: str) -> Event:
        record = self._repo.get_event(event_id)
        if record is None:
            raise NotFoundError("Event not found.", details={"event_id": event_id})
        return record

    def _publish(self, notice: EventNotice) -> None:
        # The event is already committed; a failing publisher must not undo it.
        try:
            self._publisher(notice)
        except Exception:
            logger.exception("Publishing {} for event {} failed", notice.kind, notice.event_id)

    @staticmethod
    def _to_detail(record: Event) -> EventDetail:
        payload = EventDetail.model_validate(record)
        prices = [ticket.price for ticket in payload.ticket_types]
        return payload.model_copy(
            update={
                "total_available": sum(ticket.available for ticket in payload.ticket_types),
                "price_range": PriceRange(min=min(prices), max=max(prices)) if prices else None,
            }
        )


__all__ = ["EventService", "NoticePublisher", "log_notice"]
