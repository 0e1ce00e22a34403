from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.domain import NotFoundError
from app.repositories import EventRepository
from app.services.order_service import OrderService
from app.services.report_service import ReportService


@pytest.fixture
def purchases(session, provider, seeded_event):
    """Alice completes two Early Bird and one VIP; a third order stays pending."""

    record = EventRepository(session).get_event(seeded_event.event_id)
    record.event_date = datetime.now(timezone.utc) + timedelta(days=30)
    session.commit()

    orders = OrderService(session, provider)
    early = orders.create_purchase(
        event_id=seeded_event.event_id,
        ticket_type_id="option_1",
        ticket_count=2,
        client_price="50.00",
        buyer_id="alice",
    )
    vip = orders.create_purchase(
        event_id=seeded_event.event_id,
        ticket_type_id="vip",
        ticket_count=1,
        client_price="120.00",
        buyer_id="alice",
    )
    pending = orders.create_purchase(
        event_id=seeded_event.event_id,
        ticket_type_id="option_1",
        ticket_count=3,
        client_price="50.00",
        buyer_id="alice",
    )
    orders.complete_purchase("ORDER-1")
    orders.complete_purchase("ORDER-2")
    return {"early": early, "vip": vip, "pending": pending}


def test_list_history_formats_and_summarizes(session, purchases):
    history = ReportService(session).list_history("alice", page=1, limit=10)

    assert history.pagination.total_transactions == 3
    assert history.pagination.total_pages == 1
    assert history.pagination.has_next_page is False
    assert history.filters.applied_status == "all"
    assert history.filters.applied_event_id == "all"

    by_id = {view.transaction_id: view for view in history.transactions}
    early = by_id[purchases["early"].transaction_id]
    assert early.ticket_details.event_title == "Harbour Lights Festival"
    assert early.ticket_details.total_amount == Decimal("100.00")
    assert early.payment_method_label == "PayPal"
    assert early.formatted_amount == "$100.00"
    assert early.can_refund is True
    assert by_id[purchases["pending"].transaction_id].can_refund is False

    summary = history.summary
    assert summary.total_spent == Decimal("220.00")
    assert summary.total_tickets == 3
    assert summary.total_events == 1
    assert summary.completed_transactions == 2
    assert summary.ticket_type_breakdown["Early Bird"].total_spent == Decimal("100.00")
    assert summary.ticket_type_breakdown["VIP"].count == 1


def test_list_history_paginates_and_filters(session, purchases):
    service = ReportService(session)

    page = service.list_history("alice", page=2, limit=2)
    assert len(page.transactions) == 1
    assert page.pagination.total_pages == 2
    assert page.pagination.has_prev_page is True
    assert page.pagination.has_next_page is False

    pending = service.list_history("alice", status="pending")
    assert [view.status for view in pending.transactions] == ["PENDING"]
    assert pending.filters.applied_status == "PENDING"

    assert service.list_history("bob").pagination.total_transactions == 0


def test_get_transaction_scoped_to_buyer(session, purchases):
    service = ReportService(session)

    detail = service.get_transaction(purchases["vip"].transaction_id, "alice")
    assert detail.is_upcoming is True
    assert detail.ticket_details.ticket_type == "vip"

    with pytest.raises(NotFoundError):
        service.get_transaction(purchases["vip"].transaction_id, "bob")


def test_history_tolerates_deleted_event(session, purchases, seeded_event):
    EventRepository(session).delete_event(seeded_event.event_id)
    session.commit()

    service = ReportService(session)
    history = service.list_history("alice")

    assert history.pagination.total_transactions == 3
    assert all(view.ticket_details.event_title is None for view in history.transactions)
    assert all(view.can_refund is False for view in history.transactions)
    detail = service.get_transaction(purchases["early"].transaction_id, "alice")
    assert detail.is_upcoming is False


def test_payment_statistics(session, purchases):
    stats = ReportService(session).payment_statistics("alice")

    assert stats.overview.total_transactions == 3
    assert stats.overview.total_amount == Decimal("370.00")
    assert stats.overview.completed_transactions == 2
    assert stats.overview.completed_amount == Decimal("220.00")
    assert stats.overview.completed_tickets == 3
    assert [item.ticket_type_name for item in stats.ticket_type_breakdown] == ["VIP", "Early Bird"]
    assert stats.ticket_type_breakdown[1].average_price == Decimal("50.00")
    assert len(stats.monthly_breakdown) == 1
    assert stats.monthly_breakdown[0].transactions == 2
    assert stats.period.start_date == "All time"
    assert stats.period.end_date == "Present"


def test_payment_statistics_respects_period(session, purchases):
    future = datetime.now(timezone.utc) + timedelta(days=1)

    stats = ReportService(session).payment_statistics("alice", start=future)

    assert stats.overview.total_transactions == 0
    assert stats.ticket_type_breakdown == []
    assert stats.period.start_date == future.isoformat()


def test_event_buyers(session, purchases, seeded_event):
    report = ReportService(session).event_buyers(seeded_event.event_id)

    assert report.event_title == "Harbour Lights Festival"
    assert report.total_tickets_sold == 3
    assert report.total_revenue == Decimal("220.00")
    assert report.average_ticket_price == Decimal("73.33")
    assert report.total_ticket_type_options == 2
    assert report.ticket_type_summary["option_1"].count == 2
    assert report.ticket_type_summary["vip"].average_price == Decimal("120.00")
    assert {row.buyer_id for row in report.buyers} == {"alice"}
    assert len(report.buyers) == 2


def test_event_buyers_without_sales(session, seeded_event):
    with pytest.raises(NotFoundError, match="No tickets sold for this event"):
        ReportService(session).event_buyers(seeded_event.event_id)


def test_event_buyers_unknown_event(session):
    with pytest.raises(NotFoundError, match="Event not found"):
        ReportService(session).event_buyers("missing")
