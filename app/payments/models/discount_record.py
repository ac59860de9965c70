"""
DiscountRecord: shadow ledger for discounted-offer checkouts.

Not a foreign key to PaymentRecord. A DiscountRecord shares the
PaymentRecord's ``session_id`` string and is synchronized one way
(PaymentRecord → DiscountRecord) whenever a payment update is
classified as a discount payment. Discount checkouts created through
the discount API also write their row here directly.
"""

from __future__ import annotations

from django.db import models

from payments.models.checkout_record import CheckoutRecord


class DiscountRecord(CheckoutRecord):
    """
    Discount checkout with the applicant details sent to the discount API.

    Fields (in addition to CheckoutRecord):
        name/phone/institute_or_university/country: Applicant details
        metadata: Checkout metadata sent to the provider
    """

    name = models.CharField(max_length=255, blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    institute_or_university = models.CharField(max_length=255, blank=True, default="")
    country = models.CharField(max_length=100, blank=True, default="")

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Checkout metadata sent to the provider",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Discount Record"
        verbose_name_plural = "Discount Records"

    def __str__(self) -> str:
        return f"DiscountRecord({self.session_id}, {self.status}, {self.amount_display})"
