"""
PayPal REST adapter (Orders v2).

Authenticates with the client-credentials grant and keeps the access
token until shortly before it expires. Every call applies
PAYPAL_API_TIMEOUT_SECONDS; transport failures and non-2xx answers are
raised as PayPalError.

Usage:
    adapter = PayPalAdapter.from_settings()
    order = adapter.create_order(
        amount=Decimal("45.00"),
        currency="eur",
        reference_id="PAYPAL_ORDER_1700000000000",
        return_url="https://nursingmeet2026.com/success",
        cancel_url="https://nursingmeet2026.com/cancel",
    )
    redirect(order.approval_url)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import requests
from django.conf import settings

from payments.exceptions import PayPalError

TOKEN_EXPIRY_MARGIN_SECONDS = 60


@dataclass
class PayPalOrderResult:
    """
    Order fields returned by PayPal.

    Attributes:
        id: PayPal order id
        status: CREATED, APPROVED, COMPLETED, VOIDED, ...
        approval_url: Link the payer follows to approve the order
        capture_id: Capture id once the order is captured
    """

    id: str
    status: str | None = None
    approval_url: str | None = None
    capture_id: str | None = None
    payer_email: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return (self.status or "").upper() == "COMPLETED"

    @classmethod
    def from_response(cls, body: dict[str, Any]) -> PayPalOrderResult:
        approval_url = None
        for link in body.get("links") or []:
            if link.get("rel") in ("approve", "payer-action"):
                approval_url = link.get("href")
                break

        capture_id = None
        for unit in body.get("purchase_units") or []:
            captures = (unit.get("payments") or {}).get("captures") or []
            if captures:
                capture_id = captures[0].get("id")
                break

        payer = body.get("payer") or {}
        return cls(
            id=body["id"],
            status=body.get("status"),
            approval_url=approval_url,
            capture_id=capture_id,
            payer_email=payer.get("email_address"),
            raw_response=body,
        )


class PayPalAdapter:
    """Thin client over the PayPal Orders API."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PAYPAL_API_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    @classmethod
    def from_settings(cls) -> PayPalAdapter:
        return cls(
            client_id=settings.PAYPAL_CLIENT_ID,
            client_secret=settings.PAYPAL_CLIENT_SECRET,
            base_url=settings.PAYPAL_BASE_URL,
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Authentication
    # =========================================================================

    def get_access_token(self) -> str:
        if self._access_token and time.time() < self._token_expires_at:
            return self._access_token

        if not self.client_id or not self.client_secret:
            raise PayPalError(
                "PayPal credentials are not configured",
                error_code="PAYPAL_NOT_CONFIGURED",
            )

        body = self._send(
            "post",
            "/v1/oauth2/token",
            operation="get_access_token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
            headers={"Accept": "application/json"},
        )
        token = body.get("access_token")
        if not token:
            raise PayPalError(
                "PayPal token response has no access_token",
                error_code="PAYPAL_AUTH_FAILED",
            )
        expires_in = int(body.get("expires_in") or 0)
        self._access_token = token
        self._token_expires_at = time.time() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        return token

    # =========================================================================
    # Orders
    # =========================================================================

    def create_order(
        self,
        amount: Decimal,
        currency: str,
        reference_id: str,
        return_url: str | None = None,
        cancel_url: str | None = None,
    ) -> PayPalOrderResult:
        """
        Create a CAPTURE-intent order for a single purchase unit.

        Raises:
            PayPalError: Transport failure or non-2xx response
        """
        payload: dict[str, Any] = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": reference_id,
                    "amount": {
                        "currency_code": currency.upper(),
                        "value": f"{Decimal(amount):.2f}",
                    },
                }
            ],
        }
        if return_url or cancel_url:
            payload["application_context"] = {
                "return_url": return_url,
                "cancel_url": cancel_url,
                "user_action": "PAY_NOW",
            }

        body = self._send(
            "post",
            "/v2/checkout/orders",
            operation="create_order",
            json=payload,
            headers=self._auth_headers(),
        )
        return PayPalOrderResult.from_response(body)

    def capture_order(self, order_id: str) -> PayPalOrderResult:
        """
        Capture an approved order.

        Raises:
            PayPalError: Transport failure or non-2xx response
        """
        body = self._send(
            "post",
            f"/v2/checkout/orders/{order_id}/capture",
            operation="capture_order",
            json={},
            headers=self._auth_headers(),
        )
        return PayPalOrderResult.from_response(body)

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Content-Type": "application/json",
        }

    def _send(self, method: str, path: str, operation: str, **kwargs) -> dict[str, Any]:
        logger = self.get_logger()
        log_context = {"operation": operation, "path": path}
        start_time = time.time()
        logger.info("Starting PayPal operation", extra=log_context)

        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                timeout=self.timeout,
                **kwargs,
            )
        except requests.Timeout as e:
            logger.error("PayPal request timed out", extra=log_context)
            raise PayPalError(
                "PayPal request timed out",
                error_code="PAYPAL_TIMEOUT",
            ) from e
        except requests.RequestException as e:
            logger.error("Connection error to PayPal", extra=log_context, exc_info=True)
            raise PayPalError(
                "Could not connect to PayPal",
                error_code="PAYPAL_UNAVAILABLE",
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        if not response.ok:
            logger.error(
                "PayPal API error",
                extra={
                    **log_context,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
            raise PayPalError(
                f"PayPal returned HTTP {response.status_code}",
                status_code=response.status_code,
                details={"body": response.text[:500]},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise PayPalError(
                "PayPal returned a non-JSON body",
                status_code=response.status_code,
            ) from e

        logger.info(
            "PayPal operation completed",
            extra={**log_context, "duration_ms": duration_ms},
        )
        return body
