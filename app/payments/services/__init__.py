"""
Payment services.

This module provides:
- ReconciliationService: Matches provider events to records and applies them
- DiscountSyncService: Keeps the discount ledger in sync with payments
- RegistrationLinker: Links completed payments to registration forms
- PaymentStatusService: Status refresh, session expiry and the stale sweep
- CheckoutService: Stripe checkout session creation with pricing validation
- DiscountService: Discount checkouts and the discount webhook endpoint
- PayPalService: PayPal order creation and capture

Usage:
    from payments.services import ReconciliationService

    result = ReconciliationService.apply_event(event_type, event_object, vertical)

    from payments.services import PaymentStatusService

    expired = PaymentStatusService.expire_stale_payments()
"""

from payments.services.checkout_service import (
    CheckoutRequest,
    CheckoutService,
    CheckoutSession,
    validate_pricing,
)
from payments.services.discount_service import (
    DiscountCheckoutRequest,
    DiscountOutcome,
    DiscountService,
)
from payments.services.discount_sync import DiscountSyncService, is_discount_payment
from payments.services.paypal_service import PayPalOrder, PayPalOrderRequest, PayPalService
from payments.services.reconciliation_service import (
    EVENT_RULES,
    MatchingEngine,
    MatchStrategy,
    ReconciliationOutcome,
    ReconciliationService,
    StateApplier,
)
from payments.services.registration_linker import RegistrationLinker
from payments.services.status_service import PaymentStatusService

__all__ = [
    "CheckoutRequest",
    "CheckoutService",
    "CheckoutSession",
    "DiscountCheckoutRequest",
    "DiscountOutcome",
    "DiscountService",
    "DiscountSyncService",
    "EVENT_RULES",
    "MatchStrategy",
    "MatchingEngine",
    "PayPalOrder",
    "PayPalOrderRequest",
    "PayPalService",
    "PaymentStatusService",
    "ReconciliationOutcome",
    "ReconciliationService",
    "RegistrationLinker",
    "StateApplier",
    "is_discount_payment",
    "validate_pricing",
]
