from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as date_parser

from app.domain import EventUpdate, NormalizedEvent, ValidationError

from .pricing import MAX_TICKET_TYPES, extract_pricing, validate_pricing

_TEXT_FIELDS: dict[str, tuple[str, ...]] = {
    "title": ("title", "name"),
    "location": ("location",),
    "address": ("address",),
    "category": ("category",),
    "description": ("description",),
    "organiser": ("organiser", "organizer"),
    "image_url": ("image", "imageUrl", "image_url"),
}


def _first(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.isoparse(str(value))
        except (ValueError, TypeError):
            try:
                parsed = date_parser.parse(str(value))
            except (ValueError, TypeError, OverflowError):
                return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _event_date(raw: Mapping[str, Any]) -> datetime | None:
    date_value = _first(raw, ("date", "eventDate", "startDate"))
    if date_value is None:
        return None
    time_value = raw.get("time")
    if time_value and isinstance(date_value, str) and "T" not in date_value:
        combined = _parse_datetime(f"{date_value}T{time_value}")
        if combined is not None:
            return combined
    return _parse_datetime(date_value)


def normalize_event(
    raw_event: Mapping[str, Any], *, max_ticket_types: int = MAX_TICKET_TYPES
) -> NormalizedEvent:
    """Build a validated event from a raw submission, pricing included."""

    title = _clean_text(_first(raw_event, _TEXT_FIELDS["title"]))
    if not title:
        raise ValidationError("Event title is required")

    _, ticket_types = extract_pricing(raw_event)
    validate_pricing(ticket_types, max_ticket_types=max_ticket_types)

    return NormalizedEvent(
        title=title,
        location=_clean_text(_first(raw_event, _TEXT_FIELDS["location"])),
        address=_clean_text(_first(raw_event, _TEXT_FIELDS["address"])),
        category=_clean_text(_first(raw_event, _TEXT_FIELDS["category"])),
        description=_clean_text(_first(raw_event, _TEXT_FIELDS["description"])),
        organiser=_clean_text(_first(raw_event, _TEXT_FIELDS["organiser"])),
        image_url=_clean_text(_first(raw_event, _TEXT_FIELDS["image_url"])),
        event_date=_event_date(raw_event),
        ticket_types=ticket_types,
    )


def normalize_event_update(
    raw_update: Mapping[str, Any], *, max_ticket_types: int = MAX_TICKET_TYPES
) -> EventUpdate:
    """Collect the fields present in an update; pricing is replaced only when supplied."""

    update = EventUpdate()
    for field_name, keys in _TEXT_FIELDS.items():
        if not any(key in raw_update for key in keys):
            continue
        value = _clean_text(_first(raw_update, keys))
        if field_name == "title" and not value:
            raise ValidationError("Event title cannot be blank")
        update.fields[field_name] = value

    if any(key in raw_update for key in ("date", "eventDate", "startDate")):
        update.fields["event_date"] = _event_date(raw_update)

    _, ticket_types = extract_pricing(raw_update)
    if ticket_types:
        validate_pricing(ticket_types, max_ticket_types=max_ticket_types)
        update.ticket_types = ticket_types
    return update
