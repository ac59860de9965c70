"""
State enums for payment models.

PaymentRecord / DiscountRecord status:
    PENDING → COMPLETED
    PENDING → FAILED
    PENDING → EXPIRED

    COMPLETED, FAILED and EXPIRED are terminal. A provider event that
    would move a terminal record somewhere else is logged as an anomaly
    and ignored; re-applying the same terminal status is a no-op.

WebhookEvent processing:
    PENDING → PROCESSING → PROCESSED
    PENDING → PROCESSING → FAILED (can retry)
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    Lifecycle status of a payment or discount record.

    Kept separate from the free-text ``payment_status`` column, which
    mirrors whatever string the provider reported ("paid", "unpaid", ...).
    """

    PENDING = "PENDING", "Pending"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"
    EXPIRED = "EXPIRED", "Expired"

    @classmethod
    def terminal(cls) -> frozenset:
        return frozenset({cls.COMPLETED, cls.FAILED, cls.EXPIRED})

    @classmethod
    def from_provider(cls, value: str | None, default=None):
        """
        Map a provider or stored status string onto a PaymentStatus.

        Accepts our own names and the Stripe checkout session statuses
        (``complete``, ``expired``, ``open``). Unknown values return
        ``default``.
        """
        if not value:
            return default
        normalized = value.strip().upper()
        aliases = {
            "COMPLETE": cls.COMPLETED,
            "OPEN": cls.PENDING,
        }
        if normalized in aliases:
            return aliases[normalized]
        if normalized in cls.values:
            return cls(normalized)
        return default


class PaymentProvider(models.TextChoices):
    """Payment provider that owns a record's session id."""

    STRIPE = "STRIPE", "Stripe"
    PAYPAL = "PAYPAL", "PayPal"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
