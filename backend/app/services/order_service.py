"""Purchase orchestration across inventory, transactions, and the payment provider.

A purchase moves ``PENDING -> COMPLETED | FAILED | CANCELLED``:

* ``create_purchase`` validates the request against stored pricing, checks
  availability (advisory), opens a provider order, and persists a PENDING
  transaction. Provider failures abort before anything is written.
* ``complete_purchase`` runs when the provider confirms payment, whether by
  redirect or webhook. It captures the payment and then, in one database unit
  of work, flips the transaction out of PENDING and applies the conditional
  inventory decrement. A duplicate confirmation finds no PENDING row and is
  acknowledged as already processed.
* ``cancel_purchase`` marks a matching PENDING transaction as cancelled and
  otherwise reports success anyway.

No database transaction is left open across a provider call.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session

from app.core.config import settings
from app.domain import (
    AlreadyProcessedError,
    CancellationReceipt,
    CompletionReceipt,
    ConsistencyError,
    InsufficientInventoryError,
    NewTransaction,
    NotFoundError,
    PriceMismatchError,
    ProviderCapture,
    ProviderError,
    PurchaseReceipt,
    TicketingError,
    ValidationError,
)
from app.models import Transaction, TransactionStatus, utcnow
from app.repositories import EventRepository, InventoryLedger, TransactionRepository

from .payments import PaymentProvider

_CENT = Decimal("0.01")
CANCEL_REASON = "User cancelled payment"


def _parse_count(value: Any) -> int:
    message = "Ticket count must be a positive whole number"
    if isinstance(value, bool):
        raise ValidationError(message)
    if isinstance(value, int):
        count = value
    else:
        try:
            parsed = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(message) from exc
        if not parsed.is_finite() or parsed != parsed.to_integral_value():
            raise ValidationError(message)
        count = int(parsed)
    if count <= 0:
        raise ValidationError(message)
    return count


def _parse_price(value: Any) -> Decimal:
    message = "Price per ticket must be a non-negative number"
    if isinstance(value, bool):
        raise ValidationError(message)
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(message) from exc
    if not price.is_finite() or price < 0:
        raise ValidationError(message)
    return price


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class OrderService:
    """Drive purchases from request to a terminal transaction state."""

    def __init__(
        self,
        session: Session,
        provider: PaymentProvider,
        *,
        price_tolerance: Decimal | None = None,
    ) -> None:
        self._session = session
        self._provider = provider
        self._events = EventRepository(session)
        self._ledger = InventoryLedger(session)
        self._transactions = TransactionRepository(session)
        self._price_tolerance = (
            settings.price_tolerance if price_tolerance is None else Decimal(price_tolerance)
        )

    # ------------------------------------------------------------------
    # Create

    def create_purchase(
        self,
        *,
        event_id: str | None,
        ticket_type_id: str | None,
        ticket_count: Any,
        client_price: Any,
        buyer_id: str | None,
    ) -> PurchaseReceipt:
        if any(
            _missing(value)
            for value in (event_id, ticket_type_id, ticket_count, client_price, buyer_id)
        ):
            raise ValidationError(
                "Event id, ticket count, ticket type, and price per ticket are required."
            )
        count = _parse_count(ticket_count)
        offered_price = _parse_price(client_price)

        event = self._events.get_event(event_id)
        if event is None:
            raise NotFoundError("Event not found.", details={"event_id": event_id})

        ticket_type = next(
            (row for row in event.ticket_types if row.ticket_type_id == ticket_type_id), None
        )
        if ticket_type is None:
            raise NotFoundError(
                f'Ticket type "{ticket_type_id}" is not available for this event.',
                details={"event_id": event_id, "ticket_type": ticket_type_id},
            )

        stored_price = Decimal(ticket_type.price).quantize(_CENT, rounding=ROUND_HALF_UP)
        if abs(offered_price - stored_price) > self._price_tolerance:
            logger.warning(
                "Price mismatch for event {} ticket type {}: expected {} got {}",
                event_id,
                ticket_type_id,
                stored_price,
                offered_price,
            )
            raise PriceMismatchError(
                "Price mismatch. Please refresh and try again.",
                details={
                    "expected_price": str(stored_price),
                    "provided_price": str(offered_price),
                },
            )

        if not self._ledger.check_available(event_id, ticket_type_id, count):
            available = self._ledger.available(event_id, ticket_type_id) or 0
            logger.warning(
                "Insufficient inventory for event {} ticket type {}: {} requested, {} left",
                event_id,
                ticket_type_id,
                count,
                available,
            )
            raise InsufficientInventoryError(
                f"Only {available} {ticket_type.name} tickets available.",
                details={"available_tickets": available},
            )

        total = (stored_price * count).quantize(_CENT, rounding=ROUND_HALF_UP)
        event_title = event.title
        ticket_type_name = ticket_type.name
        remaining = (self._ledger.available(event_id, ticket_type_id) or 0) - count

        # Release the read snapshot before the provider round trip.
        self._session.commit()
        try:
            order = self._provider.create_order(total)
        except ProviderError:
            logger.warning("Payment provider refused order for event {} ({})", event_id, total)
            raise
        except Exception as exc:
            raise ProviderError(f"Could not open a payment order: {exc}") from exc

        try:
            transaction = self._transactions.create(
                NewTransaction(
                    buyer_id=str(buyer_id),
                    event_id=event_id,
                    ticket_type_id=ticket_type_id,
                    ticket_type_name=ticket_type_name,
                    ticket_count=count,
                    unit_price=stored_price,
                    amount=total,
                    provider_order_ref=order.order_ref,
                    payment_method=getattr(self._provider, "name", None),
                )
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.exception(
                "Provider order {} opened but its transaction could not be stored", order.order_ref
            )
            raise

        logger.info(
            "Opened purchase {} for buyer {}: {} x {} ({}) order {}",
            transaction.transaction_id,
            buyer_id,
            count,
            ticket_type_id,
            total,
            order.order_ref,
        )
        return PurchaseReceipt(
            transaction_id=transaction.transaction_id,
            approval_url=order.approval_url,
            order_summary={
                "event_title": event_title,
                "ticket_type": ticket_type_id,
                "ticket_type_name": ticket_type_name,
                "ticket_count": count,
                "price_per_ticket": stored_price,
                "total_amount": total,
                "available_after_purchase": remaining,
            },
        )

    # ------------------------------------------------------------------
    # Complete

    def complete_purchase(self, order_ref: str | None) -> CompletionReceipt:
        if _missing(order_ref):
            raise ValidationError("Missing payment token.")

        transaction = self._transactions.find_pending(order_ref)
        if transaction is None:
            logger.warning("No pending transaction for order {}; already processed", order_ref)
            raise AlreadyProcessedError(order_ref)

        transaction_id = transaction.transaction_id
        capture: ProviderCapture | None = None
        try:
            event = self._events.get_event(transaction.event_id)
            if event is None:
                raise ConsistencyError(
                    "Event associated with this transaction no longer exists",
                    details={"event_id": transaction.event_id},
                )

            current = self._ledger.available(transaction.event_id, transaction.ticket_type_id)
            if current is None or current < transaction.ticket_count:
                raise InsufficientInventoryError(
                    f"Insufficient {transaction.ticket_type_name} tickets available",
                    details={"available_tickets": current or 0},
                )
            event_title = event.title

            self._session.commit()
            capture = self._capture(order_ref)
            self._settle(transaction, capture)
        except AlreadyProcessedError:
            raise
        except TicketingError as exc:
            exc.transaction_id = transaction_id
            if not self._mark_failed(transaction, exc, capture):
                raise AlreadyProcessedError(order_ref) from exc
            raise
        except Exception as exc:
            logger.exception("Unexpected failure completing order {}", order_ref)
            if not self._mark_failed(transaction, exc, capture):
                raise AlreadyProcessedError(order_ref) from exc
            raise

        remaining = self._ledger.available(transaction.event_id, transaction.ticket_type_id) or 0
        logger.info(
            "Completed purchase {} ({} x {}), {} remaining",
            transaction_id,
            transaction.ticket_count,
            transaction.ticket_type_id,
            remaining,
        )
        return CompletionReceipt(
            transaction_id=transaction_id,
            ticket_details={
                "event_title": event_title,
                "ticket_type": transaction.ticket_type_id,
                "ticket_type_name": transaction.ticket_type_name,
                "ticket_count": transaction.ticket_count,
                "total_amount": Decimal(transaction.amount),
                "remaining_tickets": remaining,
            },
            payment_details={
                "payment_id": capture.payment_ref,
                "status": capture.status,
                "completed_at": utcnow(),
            },
        )

    def _capture(self, order_ref: str) -> ProviderCapture:
        try:
            return self._provider.capture_order(order_ref)
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(f"Could not capture payment: {exc}") from exc

    def _settle(self, transaction: Transaction, capture: ProviderCapture) -> None:
        """Flip the transaction to COMPLETED and take the stock, or neither."""

        try:
            moved = self._transactions.update_status(
                transaction,
                TransactionStatus.COMPLETED,
                details=capture.raw_details or {"payment_ref": capture.payment_ref},
                payment_status="paid",
                payment_ref=capture.payment_ref,
            )
            if not moved:
                raise AlreadyProcessedError(transaction.provider_order_ref)

            decremented = self._ledger.decrement(
                transaction.event_id, transaction.ticket_type_id, transaction.ticket_count
            )
            if not decremented:
                raise InsufficientInventoryError(
                    f"Insufficient {transaction.ticket_type_name} tickets available",
                    details={
                        "available_tickets": self._ledger.available(
                            transaction.event_id, transaction.ticket_type_id
                        )
                        or 0
                    },
                )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    def _mark_failed(
        self,
        transaction: Transaction,
        exc: Exception,
        capture: ProviderCapture | None,
    ) -> bool:
        """Downgrade a PENDING transaction to FAILED.

        Returns False when a concurrent completion already moved it out of
        PENDING, in which case the caller reports it as already processed.
        """

        self._session.rollback()
        message = exc.message if isinstance(exc, TicketingError) else str(exc)
        details: dict[str, Any] = {
            "error": message,
            "error_type": exc.__class__.__name__,
            "failed_at": utcnow().isoformat(),
        }
        if capture is not None:
            # Funds were taken; keep what is needed for a refund.
            details["capture"] = {
                "payment_ref": capture.payment_ref,
                "status": capture.status,
                "raw_details": capture.raw_details,
            }
        try:
            marked = self._transactions.update_status(
                transaction,
                TransactionStatus.FAILED,
                details=details,
                payment_status="captured" if capture is not None else None,
                payment_ref=capture.payment_ref if capture is not None else None,
            )
            if not marked:
                self._session.rollback()
                return False
            self._session.commit()
            logger.warning("Transaction {} marked FAILED: {}", transaction.transaction_id, message)
        except Exception:
            self._session.rollback()
            logger.exception(
                "Could not record failure for transaction {}", transaction.transaction_id
            )
        return True

    # ------------------------------------------------------------------
    # Cancel

    def cancel_purchase(
        self, order_ref: str | None = None, *, reason: str = CANCEL_REASON
    ) -> CancellationReceipt:
        if not _missing(order_ref):
            transaction = self._transactions.find_pending(order_ref)
            if transaction is not None:
                cancelled = self._transactions.update_status(
                    transaction,
                    TransactionStatus.CANCELLED,
                    details={"cancelled_at": utcnow().isoformat(), "reason": reason},
                )
                if cancelled:
                    self._session.commit()
                    logger.info("Cancelled purchase {}", transaction.transaction_id)
                    return CancellationReceipt(
                        message="Order cancelled successfully",
                        transaction_id=transaction.transaction_id,
                    )
                self._session.rollback()
        return CancellationReceipt(message="Order cancellation processed")


__all__ = ["CANCEL_REASON", "OrderService"]
