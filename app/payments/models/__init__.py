"""
Payment domain models.

- PaymentRecord: Primary payment ledger, one row per checkout attempt
- DiscountRecord: Shadow ledger for discount checkouts, keyed by session id
- WebhookEvent: Stored provider webhook deliveries for idempotent processing
"""

from payments.models.checkout_record import CheckoutRecord
from payments.models.discount_record import DiscountRecord
from payments.models.payment_record import PAYPAL_SESSION_PREFIX, PaymentRecord
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "CheckoutRecord",
    "DiscountRecord",
    "PAYPAL_SESSION_PREFIX",
    "PaymentRecord",
    "WebhookEvent",
]
