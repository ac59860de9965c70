"""
PaymentRecord: the primary payment ledger.

One row per checkout attempt. Rows are created PENDING when the
checkout session is created (before the payer is redirected), then
advanced by provider webhooks, manual status refreshes or the stale
sweep. Rows are never hard-deleted.

Usage:
    from payments.models import PaymentRecord

    record = PaymentRecord.objects.create(
        vertical=Vertical.NURSING,
        session_id="cs_test_123",
        amount_total=Decimal("45.00"),
        currency="eur",
        payment_status="unpaid",
    )

    record.complete(payment_status="paid")
    record.save()
"""

from __future__ import annotations

from django.db import models

from payments.models.checkout_record import CheckoutRecord
from payments.state_machines import PaymentProvider, PaymentStatus

PAYPAL_SESSION_PREFIX = "PAYPAL_"


class PaymentRecordQuerySet(models.QuerySet):
    """Lookups used by the matching engine and the sweep."""

    def pending(self):
        return self.filter(status=PaymentStatus.PENDING)

    def stale(self, now):
        """PENDING rows whose provider session expired before ``now``."""
        return self.pending().filter(stripe_expires_at__lt=now)


class PaymentRecord(CheckoutRecord):
    """
    A single checkout attempt with Stripe or PayPal.

    Fields (in addition to CheckoutRecord):
        provider: STRIPE or PAYPAL
        pricing_config: Pricing option that validated the amount
        metadata: Checkout metadata sent to the provider

    The reverse one-to-one ``registration_form`` is set by the
    registration linker once the payment completes.
    """

    provider = models.CharField(
        max_length=10,
        choices=PaymentProvider.choices,
        default=PaymentProvider.STRIPE,
        help_text="Payment provider owning the session id",
    )

    pricing_config = models.ForeignKey(
        "conferences.PricingConfig",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_records",
        help_text="Pricing option that validated this amount (null for legacy rows)",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Checkout metadata sent to the provider",
    )

    objects = PaymentRecordQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Record"
        verbose_name_plural = "Payment Records"
        indexes = [
            models.Index(
                fields=["vertical", "status", "amount_total"], name="payrec_vertical_status_amt_idx"
            ),
            models.Index(fields=["status", "stripe_expires_at"], name="payrec_status_expires_idx"),
        ]

    def __str__(self) -> str:
        return f"PaymentRecord({self.session_id}, {self.status}, {self.amount_display})"

    @property
    def is_paypal(self) -> bool:
        return self.provider == PaymentProvider.PAYPAL or self.session_id.startswith(
            PAYPAL_SESSION_PREFIX
        )

    @property
    def linked_registration(self):
        """The linked RegistrationForm, or None."""
        try:
            return self.registration_form
        except models.ObjectDoesNotExist:
            return None
