"""Ticket pricing normalization for raw event submissions.

Submissions arrive in one of several historical shapes. Each shape is tried in
priority order and the first one that yields ticket types wins outright;
shapes are never merged.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from app.domain import TicketTypeSpec, ValidationError

MAX_TICKET_TYPES = 10
INDEXED_SLOTS = 10

_CENT = Decimal("0.01")

_LEGACY_TIERS: tuple[tuple[str, str, str], ...] = (
    ("regular", "Regular", "regular"),
    ("vip", "VIP", "vip"),
)


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _parse_price(value: Any, label: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"Price for {label} must be a number")
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Price for {label} must be a number") from exc
    if not price.is_finite():
        raise ValidationError(f"Price for {label} must be a number")
    return price.quantize(_CENT, rounding=ROUND_HALF_UP)


def _parse_available(value: Any, label: str) -> int:
    message = f"Available tickets for {label} must be a whole number"
    if isinstance(value, bool):
        raise ValidationError(message)
    if isinstance(value, int):
        return value
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(message) from exc
    if not parsed.is_finite() or parsed != parsed.to_integral_value():
        raise ValidationError(message)
    return int(parsed)


def _build(
    ticket_type_id: str,
    name: Any,
    price: Any,
    available: Any,
    description: Any,
) -> TicketTypeSpec:
    clean_name = str(name).strip()
    label = clean_name or ticket_type_id
    return TicketTypeSpec(
        ticket_type_id=str(ticket_type_id),
        name=clean_name,
        price=_parse_price(price, label),
        available=_parse_available(available, label),
        description=str(description) if _present(description) else "",
    )


def _as_option_list(value: Any) -> list[Any] | None:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    return value if isinstance(value, list) else None


def _from_options_array(raw: Mapping[str, Any]) -> list[TicketTypeSpec]:
    options = _as_option_list(raw.get("pricingOptions"))
    if not options:
        return []

    ticket_types: list[TicketTypeSpec] = []
    for index, option in enumerate(options):
        if not isinstance(option, Mapping):
            continue
        name = option.get("name")
        price = option.get("price")
        available = option.get("available")
        if not _present(name) or price is None or available is None:
            continue
        ticket_type_id = option.get("id") or f"option_{index + 1}"
        ticket_types.append(
            _build(ticket_type_id, name, price, available, option.get("description"))
        )
    return ticket_types


def _indexed_reader(
    name_key: str, price_key: str, available_key: str, description_key: str
) -> Callable[[Mapping[str, Any]], list[TicketTypeSpec]]:
    def read(raw: Mapping[str, Any]) -> list[TicketTypeSpec]:
        ticket_types: list[TicketTypeSpec] = []
        for index in range(INDEXED_SLOTS):
            name = raw.get(name_key.format(index))
            price = raw.get(price_key.format(index))
            available = raw.get(available_key.format(index))
            if not _present(name) or price is None or available is None:
                continue
            ticket_types.append(
                _build(
                    f"option_{index + 1}",
                    name,
                    price,
                    available,
                    raw.get(description_key.format(index)),
                )
            )
        return ticket_types

    return read


def _from_legacy_tiers(raw: Mapping[str, Any]) -> list[TicketTypeSpec]:
    ticket_types: list[TicketTypeSpec] = []
    for ticket_type_id, name, prefix in _LEGACY_TIERS:
        price = raw.get(f"{prefix}Price")
        available = raw.get(f"{prefix}Available")
        if price is None or available is None:
            continue
        ticket_types.append(
            _build(ticket_type_id, name, price, available, raw.get(f"{prefix}Description"))
        )
    return ticket_types


PRICING_FORMATS: tuple[tuple[str, Callable[[Mapping[str, Any]], list[TicketTypeSpec]]], ...] = (
    ("options_array", _from_options_array),
    (
        "indexed_pricing",
        _indexed_reader(
            "pricing_{}_name", "pricing_{}_price", "pricing_{}_available", "pricing_{}_description"
        ),
    ),
    (
        "indexed_ticket",
        _indexed_reader(
            "ticketName_{}", "ticketPrice_{}", "ticketAvailable_{}", "ticketDescription_{}"
        ),
    ),
    ("legacy_tiers", _from_legacy_tiers),
)


def extract_pricing(raw: Mapping[str, Any]) -> tuple[str | None, list[TicketTypeSpec]]:
    """Return the first matching format name and its ticket types, unvalidated."""

    for format_name, reader in PRICING_FORMATS:
        ticket_types = reader(raw)
        if ticket_types:
            return format_name, ticket_types
    return None, []


def validate_pricing(
    ticket_types: list[TicketTypeSpec], *, max_ticket_types: int = MAX_TICKET_TYPES
) -> None:
    if not ticket_types:
        raise ValidationError("At least one pricing option is required")
    if len(ticket_types) > max_ticket_types:
        raise ValidationError(f"Maximum {max_ticket_types} pricing options allowed")

    seen: set[str] = set()
    for ticket_type in ticket_types:
        key = ticket_type.ticket_type_id
        if key in seen:
            raise ValidationError(f"Duplicate pricing option id {key}")
        seen.add(key)
        if not ticket_type.name.strip():
            raise ValidationError(f"Pricing option {key} must have a name")
        if ticket_type.price < 0:
            raise ValidationError(f"Price for {ticket_type.name} cannot be negative")
        if ticket_type.available < 0:
            raise ValidationError(
                f"Available tickets for {ticket_type.name} cannot be negative"
            )


def normalize_pricing(
    raw: Mapping[str, Any], *, max_ticket_types: int = MAX_TICKET_TYPES
) -> list[TicketTypeSpec]:
    """Parse and validate the pricing set carried by a raw submission."""

    _, ticket_types = extract_pricing(raw)
    validate_pricing(ticket_types, max_ticket_types=max_ticket_types)
    return ticket_types


__all__ = [
    "MAX_TICKET_TYPES",
    "PRICING_FORMATS",
    "extract_pricing",
    "normalize_pricing",
    "validate_pricing",
]
