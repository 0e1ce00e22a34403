"""Read-only rollups over transactions for buyers and organisers."""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Sequence

from sqlalchemy.orm import Session

from app.core.config import settings
from app.domain import NotFoundError
from app.models import SETTLED_STATUSES, Event, Transaction
from app.repositories import EventRepository, TransactionRepository
from app.schemas import (
    AppliedFilters,
    BuyerRow,
    EventBuyersReport,
    HistorySummary,
    MonthlyStatistic,
    Pagination,
    PaymentHistory,
    PaymentStatistics,
    StatisticsOverview,
    StatisticsPeriod,
    TicketDetails,
    TicketTypeSales,
    TicketTypeSpend,
    TicketTypeStatistic,
    TransactionDetail,
    TransactionRecord,
    TransactionView,
)

_CENT = Decimal("0.01")
_ZERO = Decimal("0.00")
_PAYMENT_METHOD_LABELS = {"paypal": "PayPal"}


def _money(value: Decimal | int | float | None) -> Decimal:
    return Decimal(str(value or 0)).quantize(_CENT, rounding=ROUND_HALF_UP)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""

    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _is_settled(transaction: Transaction) -> bool:
    return transaction.status in SETTLED_STATUSES


def _is_upcoming(event: Event | None, now: datetime) -> bool:
    event_date = _aware(event.event_date) if event is not None else None
    return event_date is not None and event_date > now


class ReportService:
    """Aggregate payment history, statistics, and buyer lists."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._events = EventRepository(session)
        self._transactions = TransactionRepository(session)

    # ------------------------------------------------------------------
    # Buyer views

    def list_history(
        self,
        buyer_id: str,
        *,
        page: int = 1,
        limit: int | None = None,
        status: str | None = None,
        event_id: str | None = None,
    ) -> PaymentHistory:
        page = max(int(page or 1), 1)
        limit = min(max(int(limit or settings.history_default_limit), 1), settings.history_max_limit)
        status = status.upper() if status else None

        rows, total = self._transactions.find_by_owner(
            buyer_id, status=status, event_id=event_id, page=page, limit=limit
        )
        events = self._events.get_events(row.event_id for row in rows)
        now = datetime.now(timezone.utc)
        views = [self._to_view(row, events.get(row.event_id), now) for row in rows]

        return PaymentHistory(
            transactions=views,
            pagination=Pagination(
                current_page=page,
                total_pages=math.ceil(total / limit),
                total_transactions=total,
                has_next_page=(page - 1) * limit + limit < total,
                has_prev_page=page > 1,
                items_per_page=limit,
            ),
            summary=self._summarize([row for row in rows if _is_settled(row)]),
            filters=AppliedFilters(
                applied_status=status or "all",
                applied_event_id=event_id or "all",
            ),
        )

    def get_transaction(self, transaction_id: str, buyer_id: str) -> TransactionDetail:
        transaction = self._transactions.get_by_transaction_id(transaction_id, buyer_id=buyer_id)
        if transaction is None:
            raise NotFoundError(
                "Transaction not found", details={"transaction_id": transaction_id}
            )
        event = self._events.get_event(transaction.event_id)
        now = datetime.now(timezone.utc)
        view = self._to_view(transaction, event, now)
        return TransactionDetail(**view.model_dump(), is_upcoming=_is_upcoming(event, now))

    def payment_statistics(
        self,
        buyer_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> PaymentStatistics:
        rows = self._transactions.list_for_owner(buyer_id, start=start, end=end)
        settled = [row for row in rows if _is_settled(row)]

        overview = StatisticsOverview(
            total_transactions=len(rows),
            total_amount=_money(sum((Decimal(row.amount) for row in rows), _ZERO)),
            total_tickets=sum(row.ticket_count for row in rows),
            completed_transactions=len(settled),
            completed_amount=_money(sum((Decimal(row.amount) for row in settled), _ZERO)),
            completed_tickets=sum(row.ticket_count for row in settled),
        )

        by_name: dict[str, list[Transaction]] = defaultdict(list)
        by_month: dict[tuple[int, int], list[Transaction]] = defaultdict(list)
        for row in settled:
            by_name[row.ticket_type_name].append(row)
            created = _aware(row.created_at)
            by_month[(created.year, created.month)].append(row)

        ticket_types = [
            TicketTypeStatistic(
                ticket_type_name=name,
                count=sum(row.ticket_count for row in group),
                total_amount=_money(sum((Decimal(row.amount) for row in group), _ZERO)),
                transactions=len(group),
                average_price=_money(
                    sum((Decimal(row.unit_price) for row in group), _ZERO) / len(group)
                ),
            )
            for name, group in by_name.items()
        ]
        ticket_types.sort(key=lambda item: item.total_amount, reverse=True)

        monthly = [
            MonthlyStatistic(
                year=year,
                month=month,
                count=sum(row.ticket_count for row in group),
                total_amount=_money(sum((Decimal(row.amount) for row in group), _ZERO)),
                transactions=len(group),
            )
            for (year, month), group in sorted(by_month.items(), reverse=True)
        ]

        return PaymentStatistics(
            overview=overview,
            ticket_type_breakdown=ticket_types,
            monthly_breakdown=monthly,
            period=StatisticsPeriod(
                start_date=start.isoformat() if start else "All time",
                end_date=end.isoformat() if end else "Present",
            ),
        )

    # ------------------------------------------------------------------
    # Organiser views

    def event_buyers(self, event_id: str) -> EventBuyersReport:
        event = self._events.get_event(event_id)
        if event is None:
            raise NotFoundError("Event not found", details={"event_id": event_id})

        rows = self._transactions.list_settled_for_event(event_id)
        if not rows:
            raise NotFoundError("No tickets sold for this event", details={"event_id": event_id})

        counts: dict[str, int] = defaultdict(int)
        revenue: dict[str, Decimal] = defaultdict(lambda: _ZERO)
        names: dict[str, str] = {}
        for row in rows:
            names.setdefault(row.ticket_type_id, row.ticket_type_name)
            counts[row.ticket_type_id] += row.ticket_count
            revenue[row.ticket_type_id] += Decimal(row.amount)

        summary = {
            ticket_type_id: TicketTypeSales(
                name=names[ticket_type_id],
                count=counts[ticket_type_id],
                revenue=_money(revenue[ticket_type_id]),
                average_price=_money(revenue[ticket_type_id] / counts[ticket_type_id]),
            )
            for ticket_type_id in names
        }
        total_tickets = sum(counts.values())
        total_revenue = sum(revenue.values(), _ZERO)

        return EventBuyersReport(
            event_title=event.title,
            total_tickets_sold=total_tickets,
            total_revenue=_money(total_revenue),
            average_ticket_price=_money(total_revenue / total_tickets),
            ticket_type_summary=summary,
            total_ticket_type_options=len(summary),
            buyers=[
                BuyerRow(
                    buyer_id=row.buyer_id,
                    ticket_count=row.ticket_count,
                    ticket_type=row.ticket_type_id,
                    ticket_type_name=row.ticket_type_name,
                    price_per_ticket=_money(row.unit_price),
                    amount=_money(row.amount),
                    purchase_date=row.created_at,
                    transaction_id=row.transaction_id,
                )
                for row in rows
            ],
        )

    # ------------------------------------------------------------------
    # Formatting

    def _to_view(
        self, transaction: Transaction, event: Event | None, now: datetime
    ) -> TransactionView:
        record = TransactionRecord.model_validate(transaction)
        method = transaction.payment_method or ""
        can_refund = (
            _is_settled(transaction)
            and transaction.payment_status == "paid"
            and _is_upcoming(event, now)
        )
        return TransactionView(
            **record.model_dump(),
            ticket_details=TicketDetails(
                event_title=event.title if event else None,
                event_location=event.location if event else None,
                event_address=event.address if event else None,
                event_date=event.event_date if event else None,
                event_image=event.image_url if event else None,
                event_category=event.category if event else None,
                ticket_type=transaction.ticket_type_id,
                ticket_type_name=transaction.ticket_type_name,
                price_per_ticket=_money(transaction.unit_price),
                ticket_count=transaction.ticket_count,
                total_amount=_money(transaction.amount),
            ),
            payment_method_label=_PAYMENT_METHOD_LABELS.get(method.lower(), method.title() or "Unknown"),
            formatted_amount=f"${_money(transaction.amount)}",
            formatted_date=_aware(transaction.created_at).strftime("%Y-%m-%d"),
            can_refund=can_refund,
        )

    @staticmethod
    def _summarize(settled: Sequence[Transaction]) -> HistorySummary:
        breakdown: dict[str, TicketTypeSpend] = {}
        for row in settled:
            name = row.ticket_type_name or row.ticket_type_id
            entry = breakdown.setdefault(name, TicketTypeSpend())
            entry.count += row.ticket_count
            entry.total_spent = _money(entry.total_spent + Decimal(row.amount))
            entry.transactions += 1

        return HistorySummary(
            total_spent=_money(sum((Decimal(row.amount) for row in settled), _ZERO)),
            total_tickets=sum(row.ticket_count for row in settled),
            total_events=len(_distinct(row.event_id for row in settled)),
            completed_transactions=len(settled),
            ticket_type_breakdown=breakdown,
        )


def _distinct(values: Iterable[str]) -> set[str]:
    return {value for value in values if value}


__all__ = ["ReportService"]
