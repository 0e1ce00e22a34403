"""Domain errors raised by the ticketing engine.

Every error carries a stable code and a user-safe message so the HTTP layer
can present it without leaking internals.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    PRICE_MISMATCH = "PRICE_MISMATCH"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    CONSISTENCY_ERROR = "CONSISTENCY_ERROR"
    UNAUTHENTICATED = "UNAUTHENTICATED"


class TicketingError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode = ErrorCode.VALIDATION_FAILED

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        transaction_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})
        self.transaction_id = transaction_id

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }
        if self.transaction_id:
            payload["transaction_id"] = self.transaction_id
        return payload


class ValidationError(TicketingError):
    """Raised for bad or missing pricing and purchase fields."""

    code = ErrorCode.VALIDATION_FAILED


class NotFoundError(TicketingError):
    """Raised when an event, ticket type, or transaction is absent."""

    code = ErrorCode.NOT_FOUND


class AlreadyProcessedError(NotFoundError):
    """Raised when a provider order reference has no pending transaction left."""

    code = ErrorCode.ALREADY_PROCESSED

    def __init__(self, order_ref: str | None = None) -> None:
        super().__init__(
            "Transaction not found or already processed",
            details={"order_ref": order_ref} if order_ref else None,
        )


class PriceMismatchError(TicketingError):
    """Raised when the client price is stale against the stored price."""

    code = ErrorCode.PRICE_MISMATCH


class InsufficientInventoryError(TicketingError):
    """Raised when a ticket type cannot cover the requested count."""

    code = ErrorCode.INSUFFICIENT_INVENTORY


class ProviderError(TicketingError):
    """Raised when the payment provider adapter fails."""

    code = ErrorCode.PROVIDER_ERROR


class ConsistencyError(TicketingError):
    """Raised when a transaction references an event that no longer exists."""

    code = ErrorCode.CONSISTENCY_ERROR


class AuthenticationError(TicketingError):
    """Raised when a request carries no buyer identity."""

    code = ErrorCode.UNAUTHENTICATED


__all__ = [
    "AlreadyProcessedError",
    "AuthenticationError",
    "ConsistencyError",
    "ErrorCode",
    "InsufficientInventoryError",
    "NotFoundError",
    "PriceMismatchError",
    "ProviderError",
    "TicketingError",
    "ValidationError",
]
