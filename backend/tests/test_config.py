from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.core.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = Settings(_env_file=None)

    assert settings.payment_provider == "paypal"
    assert settings.currency_code == "USD"
    assert settings.price_tolerance == Decimal("0.01")
    assert settings.max_ticket_types == 10
    assert settings.resolved_database_url.startswith("sqlite")


def test_postgres_urls_use_psycopg_driver():
    settings = Settings(_env_file=None, database_url="postgres://user:pw@db:5432/tickets")

    assert settings.resolved_database_url == (
        "postgresql+psycopg://user:pw@db:5432/tickets?target_session_attrs=read-write"
    )


def test_production_refuses_sqlite():
    settings = Settings(_env_file=None, environment="production", database_url="sqlite:///x.db")

    with pytest.raises(ValueError, match="PostgreSQL"):
        _ = settings.resolved_database_url


def test_currency_and_provider_are_normalized():
    settings = Settings(_env_file=None, currency_code="eur", payment_provider=" PayPal ")

    assert settings.currency_code == "EUR"
    assert settings.payment_provider == "paypal"


def test_invalid_currency_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, currency_code="12$")
