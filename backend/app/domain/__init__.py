"""Domain models and errors for ticket inventory and payments."""

from .errors import (
    AlreadyProcessedError,
    AuthenticationError,
    ConsistencyError,
    ErrorCode,
    InsufficientInventoryError,
    NotFoundError,
    PriceMismatchError,
    ProviderError,
    TicketingError,
    ValidationError,
)
from .models import (
    CancellationReceipt,
    CompletionReceipt,
    EventNotice,
    EventUpdate,
    NewTransaction,
    NormalizedEvent,
    ProviderCapture,
    ProviderOrder,
    PurchaseReceipt,
    TicketTypeSpec,
)

__all__ = [
    "AlreadyProcessedError",
    "AuthenticationError",
    "CancellationReceipt",
    "CompletionReceipt",
    "ConsistencyError",
    "ErrorCode",
    "EventNotice",
    "EventUpdate",
    "InsufficientInventoryError",
    "NewTransaction",
    "NormalizedEvent",
    "NotFoundError",
    "PriceMismatchError",
    "ProviderCapture",
    "ProviderError",
    "ProviderOrder",
    "PurchaseReceipt",
    "TicketTypeSpec",
    "TicketingError",
    "ValidationError",
]
