"""Payment provider adapters used by the purchase orchestrator."""

from .base import PaymentProvider
from .paypal import PayPalProvider
from .registry import (
    UnknownPaymentProviderError,
    build_provider,
    register_provider,
)

__all__ = [
    "PaymentProvider",
    "PayPalProvider",
    "UnknownPaymentProviderError",
    "build_provider",
    "register_provider",
]
