"""Durable purchase-attempt records."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import desc, func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.domain import NewTransaction
from app.models import SETTLED_STATUSES, Transaction, TransactionStatus, utcnow


class TransactionRepository:
    """Encapsulate transaction persistence and its append-only lifecycle."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def create(self, record: NewTransaction) -> Transaction:
        transaction = Transaction(
            transaction_id=record.transaction_id or str(uuid4()),
            buyer_id=record.buyer_id,
            event_id=record.event_id,
            ticket_type_id=record.ticket_type_id,
            ticket_type_name=record.ticket_type_name,
            ticket_count=record.ticket_count,
            unit_price=record.unit_price,
            amount=record.amount,
            provider_order_ref=record.provider_order_ref,
            payment_method=record.payment_method,
            status=TransactionStatus.PENDING.value,
        )
        self._session.add(transaction)
        self._session.flush()
        return transaction

    def update_status(
        self,
        transaction: Transaction,
        status: TransactionStatus | str,
        *,
        details: dict[str, Any] | None = None,
        payment_status: str | None = None,
        payment_ref: str | None = None,
    ) -> bool:
        """Move a PENDING transaction to a terminal status.

        The UPDATE is guarded on ``status = 'PENDING'``; it returns False when
        another caller already moved the record, which is how duplicate
        provider callbacks are detected.
        """

        target = TransactionStatus(status)
        if target is TransactionStatus.PENDING:
            raise ValueError("Transactions cannot transition back to PENDING")

        values: dict[str, Any] = {"status": target.value, "updated_at": utcnow()}
        if details is not None:
            values["payment_details"] = details
        if payment_status is not None:
            values["payment_status"] = payment_status
        if payment_ref is not None:
            values["provider_payment_ref"] = payment_ref

        statement = (
            update(Transaction)
            .where(
                Transaction.id == transaction.id,
                Transaction.status == TransactionStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(statement)
        if result.rowcount != 1:
            return False

        for key, value in values.items():
            set_committed_value(transaction, key, value)
        return True

    # ------------------------------------------------------------------
    # Queries

    def find_pending(self, provider_order_ref: str) -> Transaction | None:
        query = (
            select(Transaction)
            .where(
                Transaction.provider_order_ref == provider_order_ref,
                Transaction.status == TransactionStatus.PENDING.value,
            )
            .order_by(Transaction.id)
            .limit(1)
        )
        return self._session.execute(query).scalars().first()

    def get_by_transaction_id(
        self, transaction_id: str, *, buyer_id: str | None = None
    ) -> Transaction | None:
        filters: list[Any] = [Transaction.transaction_id == transaction_id]
        if buyer_id is not None:
            filters.append(Transaction.buyer_id == buyer_id)
        return self._session.execute(select(Transaction).where(*filters)).scalar_one_or_none()

    def find_by_owner(
        self,
        buyer_id: str,
        *,
        status: str | None = None,
        event_id: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Transaction], int]:
        filters: list[Any] = [Transaction.buyer_id == buyer_id]
        if status:
            if status in SETTLED_STATUSES:
                filters.append(Transaction.status.in_(SETTLED_STATUSES))
            else:
                filters.append(Transaction.status == status)
        if event_id:
            filters.append(Transaction.event_id == event_id)

        offset = (max(page, 1) - 1) * limit
        query = (
            select(Transaction)
            .where(*filters)
            .order_by(desc(Transaction.created_at), desc(Transaction.id))
            .limit(limit)
            .offset(offset)
        )
        total_query = select(func.count(Transaction.id)).where(*filters)

        rows = list(self._session.execute(query).scalars().all())
        total = self._session.execute(total_query).scalar_one()
        return rows, int(total)

    def list_for_owner(
        self,
        buyer_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Transaction]:
        filters: list[Any] = [Transaction.buyer_id == buyer_id]
        if start is not None:
            filters.append(Transaction.created_at >= start)
        if end is not None:
            filters.append(Transaction.created_at <= end)
        query = select(Transaction).where(*filters).order_by(desc(Transaction.created_at))
        return list(self._session.execute(query).scalars().all())

    def list_settled_for_event(self, event_id: str) -> list[Transaction]:
        query = (
            select(Transaction)
            .where(
                Transaction.event_id == event_id,
                Transaction.status.in_(SETTLED_STATUSES),
            )
            .order_by(Transaction.created_at, Transaction.id)
        )
        return list(self._session.execute(query).scalars().all())


__all__ = ["TransactionRepository"]
