"""Runtime registry for payment providers."""

from __future__ import annotations

from typing import Callable, Dict

from app.core.config import Settings

from .base import PaymentProvider
from .paypal import PayPalProvider

ProviderFactory = Callable[[Settings], PaymentProvider]


class UnknownPaymentProviderError(LookupError):
    """Raised when configuration names an unregistered provider."""


_FACTORIES: Dict[str, ProviderFactory] = {}


def register_provider(name: str, factory: ProviderFactory) -> None:
    """Register or replace a payment provider factory."""

    _FACTORIES[name.lower()] = factory


def build_provider(settings: Settings) -> PaymentProvider:
    """Instantiate the provider configured by ``settings.payment_provider``."""

    name = settings.payment_provider.lower()
    try:
        factory = _FACTORIES[name]
    except KeyError as exc:
        raise UnknownPaymentProviderError(f"Payment provider '{name}' is not registered") from exc
    return factory(settings)


def _paypal_factory(settings: Settings) -> PaymentProvider:
    return PayPalProvider(
        base_url=str(settings.paypal_base_url),
        client_id=settings.paypal_client_id,
        client_secret=settings.paypal_client_secret,
        return_url=settings.paypal_return_url,
        cancel_url=settings.paypal_cancel_url,
        currency_code=settings.currency_code,
        timeout=settings.provider_timeout_seconds,
    )


register_provider(PayPalProvider.name, _paypal_factory)


__all__ = [
    "UnknownPaymentProviderError",
    "build_provider",
    "register_provider",
]
