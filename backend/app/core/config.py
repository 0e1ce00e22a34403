from decimal import Decimal
from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme == "postgres":
        scheme = "postgresql"

    if scheme == "postgresql":
        scheme = "postgresql+psycopg"

    if scheme not in {"postgresql+psycopg", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("target_session_attrs", "read-write")
    new_query = urlencode(query_params, doseq=True)

    normalized = urlunparse(
        parsed._replace(
            scheme=scheme,
            query=new_query,
        )
    )
    return normalized


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/tickets.db",
        description="SQLAlchemy compatible database URL",
    )
    payment_provider: str = Field(
        default="paypal",
        description="Name of the payment provider adapter used for checkout",
    )
    paypal_base_url: AnyUrl = Field(
        default="https://api-m.sandbox.paypal.com",
        description="Base URL for the PayPal REST API",
    )
    paypal_client_id: str | None = Field(
        default=None,
        description="PayPal REST application client id",
    )
    paypal_client_secret: str | None = Field(
        default=None,
        description="PayPal REST application secret",
    )
    paypal_return_url: str = Field(
        default="http://localhost:8000/payments/complete-order",
        description="URL PayPal redirects the buyer to after approving an order",
    )
    paypal_cancel_url: str = Field(
        default="http://localhost:8000/payments/cancel-order",
        description="URL PayPal redirects the buyer to after abandoning an order",
    )
    currency_code: str = Field(
        default="USD",
        description="ISO 4217 currency used for every order",
        min_length=3,
        max_length=3,
    )
    provider_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout applied to each payment provider call",
        gt=0,
    )
    price_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        description="Largest accepted difference between client and stored unit price",
        ge=0,
    )
    max_ticket_types: int = Field(
        default=10,
        description="Maximum number of ticket types an event may carry",
        ge=1,
    )
    featured_events_limit: int = Field(
        default=10,
        description="Number of events returned by the featured listing",
        ge=1,
    )
    history_default_limit: int = Field(
        default=10,
        description="Default page size for payment history listings",
        ge=1,
    )
    history_max_limit: int = Field(
        default=100,
        description="Upper bound for payment history page size",
        ge=1,
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value

        if value.startswith("postgresql+psycopg://") or value.startswith(
            "postgresql+asyncpg://"
        ):
            return value

        normalized = value
        if normalized.startswith("postgres://"):
            normalized = "postgresql://" + normalized[len("postgres://") :]

        return normalized

    @field_validator("currency_code")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        if not value.isalpha():
            raise ValueError("currency_code must be a three-letter ISO 4217 code")
        return value.upper()

    @field_validator("payment_provider")
    @classmethod
    def _lower_provider(cls, value: str) -> str:
        candidate = value.strip().lower()
        if not candidate:
            raise ValueError("payment_provider must not be blank")
        return candidate

    @property
    def resolved_database_url(self) -> str:
        url = str(self.database_url)
        if self.environment.lower() == "production" and url.startswith("sqlite"):
            raise ValueError("DATABASE_URL must point at PostgreSQL when ENVIRONMENT=production")
        return _ensure_sqlalchemy_postgres_scheme(url)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
