"""Typed domain representations used across ingestion, persistence, and APIs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any


@dataclass(slots=True, frozen=True)
class TicketTypeSpec:
    """Canonical ticket type produced by the pricing normalizer."""

    ticket_type_id: str
    name: str
    price: Decimal
    available: int
    description: str = ""


@dataclass(slots=True)
class NormalizedEvent:
    """Clean event submission with its validated pricing set."""

    title: str
    location: str | None
    address: str | None
    category: str | None
    description: str | None
    organiser: str | None
    image_url: str | None
    event_date: datetime | None
    ticket_types: list[TicketTypeSpec] = field(default_factory=list)


@dataclass(slots=True)
class EventUpdate:
    """Partial event update; ``ticket_types`` is None when pricing is untouched."""

    fields: dict[str, Any] = field(default_factory=dict)
    ticket_types: list[TicketTypeSpec] | None = None


@dataclass(slots=True, frozen=True)
class EventNotice:
    """Message handed to the notification fan-out when an event changes."""

    kind: str
    event_id: str
    title: str
    message: str
    ticket_type_count: int
    created_at: datetime


@dataclass(slots=True, frozen=True)
class ProviderOrder:
    order_ref: str
    approval_url: str | None
    raw: dict[str, Any] | None = None


@dataclass(slots=True, frozen=True)
class ProviderCapture:
    payment_ref: str
    status: str
    raw_details: dict[str, Any] | None = None


@dataclass(slots=True)
class NewTransaction:
    """Write-once snapshot persisted when a purchase attempt is opened."""

    buyer_id: str
    event_id: str
    ticket_type_id: str
    ticket_type_name: str
    ticket_count: int
    unit_price: Decimal
    amount: Decimal
    provider_order_ref: str
    payment_method: str | None = None
    transaction_id: str | None = None


@dataclass(slots=True)
class PurchaseReceipt:
    transaction_id: str
    approval_url: str | None
    order_summary: dict[str, Any]


@dataclass(slots=True)
class CompletionReceipt:
    transaction_id: str
    ticket_details: dict[str, Any]
    payment_details: dict[str, Any]
    message: str = "Payment successful"


@dataclass(slots=True)
class CancellationReceipt:
    message: str
    transaction_id: str | None = None
