from __future__ import annotations

import json
import sys
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from app import models  # noqa: F401
from app.core.config import Settings
from app.db import Base, create_db_engine, create_session_factory
from app.domain import (
    NormalizedEvent,
    ProviderCapture,
    ProviderError,
    ProviderOrder,
    TicketTypeSpec,
)
from app.repositories import EventRepository


class StubProvider:
    """In-memory payment provider that records every call."""

    name = "paypal"

    def __init__(self) -> None:
        self.created: list[Decimal] = []
        self.captured: list[str] = []
        self.create_error: Exception | None = None
        self.capture_error: Exception | None = None
        self._counter = 0

    def create_order(self, amount: Decimal) -> ProviderOrder:
        if self.create_error is not None:
            raise self.create_error
        self._counter += 1
        order_ref = f"ORDER-{self._counter}"
        self.created.append(amount)
        return ProviderOrder(
            order_ref=order_ref,
            approval_url=f"https://pay.example.test/approve/{order_ref}",
            raw={"id": order_ref},
        )

    def capture_order(self, order_ref: str) -> ProviderCapture:
        if self.capture_error is not None:
            raise self.capture_error
        self.captured.append(order_ref)
        return ProviderCapture(
            payment_ref=f"CAPTURE-{order_ref}",
            status="COMPLETED",
            raw_details={"id": order_ref, "status": "COMPLETED"},
        )


@pytest.fixture
def sample_event_payload() -> dict[str, object]:
    path = Path(__file__).parent / "data" / "sample_event.json"
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        database_url=f"sqlite:///{tmp_path/'tickets.db'}",
        paypal_client_id="client-id",
        paypal_client_secret="client-secret",
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path/'ledger.db'}", echo=False)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def failing_provider() -> StubProvider:
    stub = StubProvider()
    stub.create_error = ProviderError("PayPal rejected POST /v2/checkout/orders with status 500")
    return stub


@pytest.fixture
def seeded_event(session):
    """Persist an event with a plentiful ``option_1`` and a single ``vip`` seat."""
    record = EventRepository(session).create_event(
        NormalizedEvent(
            title="Harbour Lights Festival",
            location="Pier 4",
            address="4 Harbour Road",
            category="music",
            description="Open air concert",
            organiser="Harbour Events",
            image_url="https://img.example.test/harbour.png",
            event_date=None,
            ticket_types=[
                TicketTypeSpec("option_1", "Early Bird", Decimal("50.00"), 100, "Limited"),
                TicketTypeSpec("vip", "VIP", Decimal("120.00"), 1, "Front row"),
            ],
        )
    )
    session.commit()
    return record
