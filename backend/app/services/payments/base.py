"""Provider contracts for payment integrations."""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from app.domain import ProviderCapture, ProviderOrder


class PaymentProvider(Protocol):
    """Interface implemented by payment provider adapters.

    Adapters raise :class:`app.domain.ProviderError` for every failure,
    including a capture the provider did not settle.
    """

    name: str

    def create_order(self, amount: Decimal) -> ProviderOrder:
        """Open a provider order for ``amount`` and return its buyer approval handle."""

    def capture_order(self, order_ref: str) -> ProviderCapture:
        """Capture the funds for an approved order."""


__all__ = ["PaymentProvider"]
