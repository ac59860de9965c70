"""
Payment adapters for external services.

All provider API calls go through these adapters to ensure consistent
error handling, timeouts and observability.

Usage:
    from payments.adapters import StripeAdapter

    adapter = StripeAdapter(api_key=settings.STRIPE_SECRET_KEY)
    session = adapter.retrieve_session("cs_test_123")
"""

from payments.adapters.paypal_adapter import PayPalAdapter, PayPalOrderResult
from payments.adapters.stripe_adapter import (
    CheckoutSessionResult,
    CreateCheckoutSessionParams,
    PaymentIntentData,
    StripeAdapter,
    VerifiedWebhook,
)

__all__ = [
    "CheckoutSessionResult",
    "CreateCheckoutSessionParams",
    "PayPalAdapter",
    "PayPalOrderResult",
    "PaymentIntentData",
    "StripeAdapter",
    "VerifiedWebhook",
]
