"""Repository abstractions for database interactions."""

from .event_repository import EventRepository
from .inventory_repository import InventoryLedger
from .transaction_repository import TransactionRepository

__all__ = [
    "EventRepository",
    "InventoryLedger",
    "TransactionRepository",
]
