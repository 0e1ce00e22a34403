from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from .db import Base


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    # Historical alias for COMPLETED; read back from older rows, never written.
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


SETTLED_STATUSES: tuple[str, ...] = (
    TransactionStatus.COMPLETED.value,
    TransactionStatus.PAID.value,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(Base):
    __tablename__ = "events"

    event_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    organiser: Mapped[str | None] = mapped_column(String(255), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    event_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    ticket_types: Mapped[list["TicketType"]] = relationship(
        "TicketType",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="TicketType.position",
    )


class TicketType(Base):
    __tablename__ = "ticket_types"
    __table_args__ = (
        CheckConstraint("available >= 0", name="ck_ticket_types_available_non_negative"),
        CheckConstraint("price >= 0", name="ck_ticket_types_price_non_negative"),
    )

    event_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("events.event_id", ondelete="CASCADE"), primary_key=True
    )
    ticket_type_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    available: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    event: Mapped[Event] = relationship("Event", back_populates="ticket_types")


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_buyer_id", "buyer_id"),
        Index("ix_transactions_event_id", "event_id"),
        Index("ix_transactions_order_ref_status", "provider_order_ref", "status"),
        CheckConstraint("ticket_count > 0", name="ck_transactions_ticket_count_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    buyer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # No foreign key: the audit trail outlives a deleted event.
    event_id: Mapped[str] = mapped_column(String(36), nullable=False)
    ticket_type_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ticket_type_name: Mapped[str] = mapped_column(String(255), nullable=False)
    ticket_count: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    provider_order_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    provider_payment_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransactionStatus.PENDING.value
    )
    payment_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payment_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @validates("unit_price", "amount", "ticket_type_name")
    def _freeze_snapshot(self, key: str, value):
        current = self.__dict__.get(key)
        if current is not None and current != value:
            raise ValueError(f"Transaction.{key} is a purchase-time snapshot and cannot change")
        return value
