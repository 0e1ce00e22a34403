"""Per-event, per-ticket-type stock counts.

``decrement`` is the only write path besides an administrative pricing
replace. It is a single conditional UPDATE, so two sessions racing for the
last unit cannot both succeed: the loser's WHERE clause simply matches no row.
"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.domain import ValidationError
from app.models import TicketType


def _require_quantity(quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Ticket quantity must be a positive whole number")
    return quantity


class InventoryLedger:
    """Race-free availability checks and decrements against the store of record."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def available(self, event_id: str, ticket_type_id: str) -> int | None:
        """Return the current stored count, or None when the ticket type is unknown."""

        # Column-only select bypasses the identity map, so the value is fresh.
        query = select(TicketType.available).where(
            TicketType.event_id == event_id,
            TicketType.ticket_type_id == ticket_type_id,
        )
        return self._session.execute(query).scalar_one_or_none()

    def check_available(self, event_id: str, ticket_type_id: str, quantity: int) -> bool:
        """Advisory check; only ``decrement`` is authoritative."""

        _require_quantity(quantity)
        current = self.available(event_id, ticket_type_id)
        return current is not None and current >= quantity

    def decrement(self, event_id: str, ticket_type_id: str, quantity: int) -> bool:
        """Subtract ``quantity`` only if that many units remain.

        Returns False and leaves the row untouched when stock is insufficient
        or the ticket type does not exist. The caller owns the commit.
        """

        _require_quantity(quantity)
        statement = (
            update(TicketType)
            .where(
                TicketType.event_id == event_id,
                TicketType.ticket_type_id == ticket_type_id,
                TicketType.available >= quantity,
            )
            .values(available=TicketType.available - quantity)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(statement)
        return result.rowcount == 1


__all__ = ["InventoryLedger"]
