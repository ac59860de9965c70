"""
Payment-specific exceptions.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - No record for a session / intent id
    ├── PaymentValidationError - Bad checkout input
    │   ├── PricingValidationError - Amount differs from the pricing config
    │   └── CurrencyNotSupportedError - Non-EUR Stripe checkout
    ├── WebhookSignatureError - Webhook signature missing or invalid
    ├── WebhookRoutingError - Event cannot be routed to a vertical
    └── PaymentProcessingError - Provider call failures
        ├── StripeError - Base for all Stripe errors
        │   ├── StripeInvalidRequestError - Invalid request params (permanent)
        │   ├── StripeAuthenticationError - Bad API key (permanent)
        │   ├── StripeRateLimitError - Rate limited (transient)
        │   ├── StripeAPIUnavailableError - API unavailable (transient)
        │   └── StripeTimeoutError - Request timeout (transient)
        └── PayPalError - PayPal REST failures
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)

Usage:
    from payments.exceptions import PricingValidationError

    if config.total_price_cents != unit_amount * quantity:
        raise PricingValidationError(
            "Checkout amount does not match pricing config",
            details={"expected_cents": 4500, "actual_cents": 4501},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for all payment operations."""

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """
    Raised when a payment or discount record cannot be found.

    Example:
        record = PaymentRecord.objects.filter(session_id=session_id).first()
        if record is None:
            raise PaymentNotFoundError(
                f"Payment record {session_id} not found",
                details={"session_id": session_id},
            )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError):
    """Raised when checkout input fails validation."""

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PricingValidationError(PaymentValidationError):
    """
    Checkout amount differs from the configured price.

    Equality is strict: the pricing total in cents must equal
    unit_amount * quantity exactly.
    """

    default_error_code: str = "PRICING_MISMATCH"


class CurrencyNotSupportedError(PaymentValidationError):
    """Stripe checkout only accepts EUR."""

    default_error_code: str = "CURRENCY_NOT_SUPPORTED"


class WebhookSignatureError(PaymentError):
    """
    Webhook signature could not be verified.

    Raised for a missing signing secret, a secret that is not a
    ``whsec_`` value, or a payload/signature mismatch. Fatal for the
    delivery: respond 400 and mutate nothing.
    """

    default_error_code: str = "INVALID_WEBHOOK_SIGNATURE"


class WebhookRoutingError(PaymentError):
    """
    A verified event could not be attributed to a conference vertical.

    Neither the checkout metadata, the checkout URLs nor an existing
    record identify the vertical. Answered with 400.
    """

    default_error_code: str = "UNROUTABLE_EVENT"


class PaymentProcessingError(PaymentError):
    """Raised when a provider call fails."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Provider Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for Stripe errors.

    Attributes:
        stripe_code: Stripe's own error code, when provided
        is_retryable: True for transient failures (rate limit, outage,
            timeout); the caller owns the retry policy
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe.

    Usually a bug on our side (unknown session id, bad params).
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"


class StripeAuthenticationError(StripeError):
    """The configured Stripe API key was rejected."""

    default_error_code: str = "STRIPE_AUTHENTICATION_ERROR"


class StripeRateLimitError(StripeError):
    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe did not answer within STRIPE_API_TIMEOUT_SECONDS.

    Local state is left untouched; the caller reports a provider error.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


class PayPalError(PaymentProcessingError):
    """PayPal REST API call failed or returned an unexpected body."""

    default_error_code: str = "PAYPAL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class LockAcquisitionError(ConflictError):
    """
    Distributed lock could not be acquired in time.

    Raised by DistributedLock when another worker holds the matching
    lock for the same vertical and amount longer than the timeout.
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


__all__ = [
    "CurrencyNotSupportedError",
    "LockAcquisitionError",
    "PayPalError",
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentProcessingError",
    "PaymentValidationError",
    "PricingValidationError",
    "StripeAPIUnavailableError",
    "StripeAuthenticationError",
    "StripeError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeTimeoutError",
    "WebhookRoutingError",
    "WebhookSignatureError",
]
