"""
Stripe API adapter for checkout and webhook operations.

Every Stripe call goes through StripeAdapter for consistent error
translation, timeouts and logging. Each adapter instance owns a
``stripe.StripeClient`` built from its own API key; nothing assigns the
process-wide ``stripe.api_key``.

Configuration (via settings):
- STRIPE_SECRET_KEY: Default API secret key
- STRIPE_API_TIMEOUT_SECONDS: HTTP timeout for API calls (default: 10)
- STRIPE_MAX_RETRIES: Network retries performed by the SDK (default: 3)

Usage:
    from payments.adapters import StripeAdapter, CreateCheckoutSessionParams

    adapter = StripeAdapter.from_settings()
    session = adapter.create_checkout_session(params)
    session = adapter.retrieve_session("cs_test_123")

    verified = StripeAdapter.verify_webhook_signature(
        payload, signature, settings.STRIPE_WEBHOOK_SECRET
    )
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeAuthenticationError,
    StripeError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
    WebhookSignatureError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

WEBHOOK_SECRET_PREFIX = "whsec_"


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateCheckoutSessionParams:
    """
    Parameters for creating a Stripe Checkout Session.

    Attributes:
        product_name: Line-item name shown on the hosted checkout page
        unit_amount_cents: Price per unit in cents
        quantity: Number of units
        currency: ISO 4217 code (lowercase)
        success_url / cancel_url: Redirect targets after checkout
        customer_email: Pre-filled payer email
        metadata: String key-value pairs attached to the session
        expires_at: Unix timestamp when the session stops accepting payment
    """

    product_name: str
    unit_amount_cents: int
    quantity: int
    currency: str
    success_url: str
    cancel_url: str
    customer_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    expires_at: int | None = None

    def __post_init__(self) -> None:
        if self.unit_amount_cents <= 0:
            raise ValueError("unit_amount_cents must be positive")
        if self.quantity <= 0:
            raise ValueError("quantity must be positive")

    def to_stripe_params(self) -> dict[str, Any]:
        metadata = {k: str(v) for k, v in self.metadata.items() if v is not None}
        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "unit_amount": self.unit_amount_cents,
                        "product_data": {"name": self.product_name},
                    },
                    "quantity": self.quantity,
                }
            ],
            "metadata": metadata,
            # payment_intent events carry the same metadata
            "payment_intent_data": {"metadata": metadata},
        }
        if self.customer_email:
            params["customer_email"] = self.customer_email
        if self.expires_at is not None:
            params["expires_at"] = self.expires_at
        return params


@dataclass
class CheckoutSessionResult:
    """
    Checkout Session fields the reconciliation pipeline reads.

    Built from an API response or from a webhook's ``data.object``.
    Amounts stay in cents here; conversion happens when a record is
    written.
    """

    id: str
    status: str | None = None
    payment_status: str | None = None
    payment_intent: str | None = None
    customer_email: str | None = None
    amount_total: int | None = None
    currency: str | None = None
    created: int | None = None
    expires_at: int | None = None
    url: str | None = None
    success_url: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, obj: Mapping[str, Any]) -> CheckoutSessionResult:
        """
        Read a session from a Stripe object or plain dict.

        Raises:
            KeyError: If the object has no ``id``
        """
        payment_intent = obj.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id")
        customer_email = obj.get("customer_email")
        if not customer_email:
            details = obj.get("customer_details") or {}
            customer_email = details.get("email")
        return cls(
            id=obj["id"],
            status=obj.get("status"),
            payment_status=obj.get("payment_status"),
            payment_intent=payment_intent,
            customer_email=customer_email,
            amount_total=obj.get("amount_total"),
            currency=obj.get("currency"),
            created=obj.get("created"),
            expires_at=obj.get("expires_at"),
            url=obj.get("url"),
            success_url=obj.get("success_url"),
            metadata=dict(obj.get("metadata") or {}),
            raw_response=dict(obj),
        )


@dataclass
class PaymentIntentData:
    """PaymentIntent fields the reconciliation pipeline reads (amount in cents)."""

    id: str
    status: str | None = None
    amount: int | None = None
    currency: str | None = None
    receipt_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, obj: Mapping[str, Any]) -> PaymentIntentData:
        return cls(
            id=obj["id"],
            status=obj.get("status"),
            amount=obj.get("amount"),
            currency=obj.get("currency"),
            receipt_email=obj.get("receipt_email"),
            metadata=dict(obj.get("metadata") or {}),
        )


@dataclass
class VerifiedWebhook:
    """
    A signature-verified webhook delivery.

    Attributes:
        event: Structured Stripe event
        payload: Raw request body as text (input for the fallback extractor)
        data: The event as a plain dict
    """

    event: stripe.Event
    payload: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str | None:
        return self.data.get("id")

    @property
    def type(self) -> str | None:
        return self.data.get("type")


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    Instances carry their own credentials; share one per request or
    build one from settings with ``from_settings()``.

    Features:
    - Per-instance ``StripeClient`` with HTTP timeout and retries
    - Automatic error translation to domain exceptions
    - Structured logging with timing metrics
    """

    def __init__(
        self,
        api_key: str,
        timeout: int | None = None,
        max_retries: int | None = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else settings.STRIPE_API_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else settings.STRIPE_MAX_RETRIES
        self._client: stripe.StripeClient | None = None

    @classmethod
    def from_settings(cls) -> StripeAdapter:
        return cls(api_key=settings.STRIPE_SECRET_KEY)

    @property
    def client(self) -> stripe.StripeClient:
        if self._client is None:
            self._client = stripe.StripeClient(
                self.api_key,
                http_client=stripe.RequestsClient(timeout=self.timeout),
                max_network_retries=self.max_retries,
            )
        return self._client

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Checkout Sessions
    # =========================================================================

    def create_checkout_session(
        self,
        params: CreateCheckoutSessionParams,
    ) -> CheckoutSessionResult:
        """
        Create a hosted Checkout Session.

        Raises:
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
            StripeTimeoutError: Request timed out
        """
        log_context = {
            "operation": "create_checkout_session",
            "unit_amount_cents": params.unit_amount_cents,
            "quantity": params.quantity,
            "currency": params.currency,
        }
        session = self._call(
            log_context,
            lambda: self.client.checkout.sessions.create(params=params.to_stripe_params()),
        )
        return CheckoutSessionResult.from_stripe(session)

    def retrieve_session(self, session_id: str) -> CheckoutSessionResult:
        """Fetch the current state of a Checkout Session."""
        log_context = {"operation": "retrieve_session", "session_id": session_id}
        session = self._call(
            log_context,
            lambda: self.client.checkout.sessions.retrieve(session_id),
        )
        return CheckoutSessionResult.from_stripe(session)

    def expire_session(self, session_id: str) -> CheckoutSessionResult:
        """Expire an open Checkout Session so it can no longer be paid."""
        log_context = {"operation": "expire_session", "session_id": session_id}
        session = self._call(
            log_context,
            lambda: self.client.checkout.sessions.expire(session_id),
        )
        return CheckoutSessionResult.from_stripe(session)

    def _call(self, log_context: dict[str, Any], operation):
        logger = self.get_logger()
        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            result = operation()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={**log_context, "duration_ms": duration_ms},
        )
        return result

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes | str,
        signature: str | None,
        secret: str | None,
    ) -> VerifiedWebhook:
        """
        Verify and parse a Stripe webhook delivery.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header value
            secret: Endpoint signing secret (whsec_...)

        Returns:
            VerifiedWebhook with the structured event and the raw text

        Raises:
            WebhookSignatureError: Missing/malformed secret, missing
                signature, bad signature or unparseable payload
        """
        if not secret or not secret.startswith(WEBHOOK_SECRET_PREFIX):
            cls.get_logger().error("Webhook signing secret is missing or malformed")
            raise WebhookSignatureError(
                "Webhook secret is not configured",
                error_code="WEBHOOK_SECRET_INVALID",
            )
        if not signature:
            raise WebhookSignatureError("Missing signature", error_code="MISSING_SIGNATURE")

        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            event = stripe.Webhook.construct_event(text, signature, secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(
                "Invalid signature",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise WebhookSignatureError(
                "Invalid payload",
                error_code="INVALID_WEBHOOK_PAYLOAD",
                details={"error": str(e)},
            ) from e
        try:
            data = json.loads(text)
        except ValueError as e:
            raise WebhookSignatureError(
                "Invalid payload",
                error_code="INVALID_WEBHOOK_PAYLOAD",
                details={"error": str(e)},
            ) from e
        return VerifiedWebhook(event=event, payload=text, data=data)

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Raises:
            StripeInvalidRequestError: Invalid request parameters
            StripeAuthenticationError: API key rejected
            StripeRateLimitError: Rate limited
            StripeTimeoutError: Request timed out
            StripeAPIUnavailableError: Connection failure or Stripe outage
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, StripeError):
            raise error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise StripeInvalidRequestError(str(error), stripe_code=error.code) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed - check API key", extra=log_context)
            raise StripeAuthenticationError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower() or "timeout" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise StripeTimeoutError(
                    "Stripe request timed out",
                    stripe_code="timeout",
                ) from error
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        if isinstance(error, stripe.StripeError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code=getattr(error, "code", None) or "api_error",
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise StripeAPIUnavailableError(
            f"Unexpected Stripe error: {error}",
            stripe_code="unknown_error",
        ) from error
