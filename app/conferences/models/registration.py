"""
RegistrationForm: an applicant's registration for one conference.

Rows are written when the applicant submits the form, before they are
redirected to the payment provider. The one-to-one link to a
PaymentRecord is established afterwards by the registration linker once
the payment completes, so ``payment_record`` stays empty until then.

Usage:
    from conferences.models import RegistrationForm

    form = (
        RegistrationForm.objects.filter(vertical=vertical, email__iexact=email)
        .order_by("-created_at", "-id")
        .first()
    )
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel

from conferences.verticals import Vertical


class RegistrationFormQuerySet(models.QuerySet):
    """Lookups used by the payment reconciliation pipeline."""

    def most_recent_for_email(self, email: str, vertical: str | None = None):
        """Newest registration for ``email`` (case-insensitive), or None."""
        queryset = self.filter(email__iexact=email)
        if vertical:
            queryset = queryset.filter(vertical=vertical)
        return queryset.order_by("-created_at", "-id").first()


class RegistrationForm(BaseModel):
    """
    Applicant details and the price snapshot taken at submission time.

    Fields:
        vertical: Conference the applicant registered for
        name/phone/email/institute_or_university/country: Applicant PII
        pricing_config: Priced option chosen (nullable for legacy rows)
        amount_paid: Snapshot of the pricing total when the form was stored
        payment_record: One-to-one link set after payment completes
    """

    # ==========================================================================
    # Applicant
    # ==========================================================================

    vertical = models.CharField(
        max_length=20,
        choices=Vertical.choices,
        db_index=True,
        help_text="Conference this registration belongs to",
    )

    name = models.CharField(max_length=255, help_text="Applicant full name")

    phone = models.CharField(max_length=50, blank=True, default="", help_text="Phone number")

    email = models.EmailField(db_index=True, help_text="Applicant email (payment correlation key)")

    institute_or_university = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Affiliation",
    )

    country = models.CharField(max_length=100, blank=True, default="", help_text="Country")

    # ==========================================================================
    # Pricing & Payment
    # ==========================================================================

    pricing_config = models.ForeignKey(
        "conferences.PricingConfig",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registration_forms",
        help_text="Pricing option chosen at registration time",
    )

    amount_paid = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Snapshot of the total price in euros at registration time",
    )

    payment_record = models.OneToOneField(
        "payments.PaymentRecord",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registration_form",
        help_text="Payment that settled this registration",
    )

    objects = RegistrationFormQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Registration Form"
        verbose_name_plural = "Registration Forms"
        indexes = [
            models.Index(fields=["vertical", "email"], name="regform_vertical_email_idx"),
        ]

    def __str__(self) -> str:
        return f"RegistrationForm({self.pk}, {self.email}, {self.vertical})"

    @property
    def is_paid(self) -> bool:
        return self.payment_record_id is not None
