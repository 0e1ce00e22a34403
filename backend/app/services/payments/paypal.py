"""PayPal Orders v2 adapter."""

from __future__ import annotations

import threading
import time
from decimal import Decimal
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings
from app.domain import ProviderCapture, ProviderError, ProviderOrder

_TOKEN_PATH = "/v1/oauth2/token"
_ORDERS_PATH = "/v2/checkout/orders"
_TOKEN_REFRESH_MARGIN_SECONDS = 60.0
_APPROVAL_RELS = ("approve", "payer-action")
_SETTLED_CAPTURE_STATUSES = {"COMPLETED"}


class PayPalProvider:
    """Thin wrapper around the PayPal REST checkout endpoints."""

    name = "paypal"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        return_url: str | None = None,
        cancel_url: str | None = None,
        currency_code: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url or str(settings.paypal_base_url)
        self.client_id = client_id if client_id is not None else settings.paypal_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.paypal_client_secret
        )
        self.return_url = return_url or settings.paypal_return_url
        self.cancel_url = cancel_url or settings.paypal_cancel_url
        self.currency_code = (currency_code or settings.currency_code).upper()
        self.timeout = timeout or settings.provider_timeout_seconds
        self.client = httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=transport)
        self._token_lock = threading.Lock()
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    # ------------------------------------------------------------------
    # Authentication

    def _bearer_token(self) -> str:
        with self._token_lock:
            if self._access_token and time.monotonic() < self._token_expires_at:
                return self._access_token
            if not self.client_id or not self.client_secret:
                raise ProviderError("PayPal credentials are not configured")

            response = self.client.post(
                _TOKEN_PATH,
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()
            token = payload.get("access_token")
            if not token:
                raise ProviderError("PayPal token response did not include an access token")
            expires_in = float(payload.get("expires_in") or 0)
            self._access_token = token
            self._token_expires_at = (
                time.monotonic() + max(expires_in - _TOKEN_REFRESH_MARGIN_SECONDS, 0.0)
            )
            return token

    def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            token = self._bearer_token()
            logger.info("PayPal {} {}", method, path)
            response = self.client.request(
                method,
                path,
                json=body if body is not None else {},
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise ProviderError(
                f"PayPal rejected {method} {path} with status {status_code}",
                details={"status_code": status_code, "body": exc.response.text[:500]},
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"PayPal request {method} {path} failed: {exc.__class__.__name__}",
            ) from exc
        except ValueError as exc:
            raise ProviderError(f"PayPal returned a non-JSON response for {path}") from exc

        if not isinstance(payload, dict):
            raise ProviderError(f"PayPal returned an unexpected payload for {path}")
        return payload

    # ------------------------------------------------------------------
    # Orders

    def create_order(self, amount: Decimal) -> ProviderOrder:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {
                        "currency_code": self.currency_code,
                        "value": f"{Decimal(amount):.2f}",
                    }
                }
            ],
            "application_context": {
                "return_url": self.return_url,
                "cancel_url": self.cancel_url,
            },
        }
        payload = self._request("POST", _ORDERS_PATH, body)
        order_id = payload.get("id")
        if not order_id:
            raise ProviderError("PayPal order response did not include an order id")

        approval_url = next(
            (
                link.get("href")
                for link in payload.get("links") or []
                if isinstance(link, dict) and link.get("rel") in _APPROVAL_RELS
            ),
            None,
        )
        return ProviderOrder(order_ref=str(order_id), approval_url=approval_url, raw=payload)

    def capture_order(self, order_ref: str) -> ProviderCapture:
        payload = self._request("POST", f"{_ORDERS_PATH}/{order_ref}/capture")
        status = str(payload.get("status") or "UNKNOWN").upper()
        if status not in _SETTLED_CAPTURE_STATUSES:
            raise ProviderError(
                f"PayPal capture for order {order_ref} returned status {status}",
                details={"status": status, "provider_response": payload},
            )
        return ProviderCapture(
            payment_ref=self._capture_id(payload) or str(payload.get("id") or order_ref),
            status=status,
            raw_details=payload,
        )

    @staticmethod
    def _capture_id(payload: dict[str, Any]) -> str | None:
        for unit in payload.get("purchase_units") or []:
            if not isinstance(unit, dict):
                continue
            captures = (unit.get("payments") or {}).get("captures") or []
            for capture in captures:
                if isinstance(capture, dict) and capture.get("id"):
                    return str(capture["id"])
        return None

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "PayPalProvider":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["PayPalProvider"]
