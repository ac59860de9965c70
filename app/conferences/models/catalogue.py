"""
Catalogue models: what a registrant can buy at each conference.

Options differ in how they are labelled (a presentation "type", an
accommodation described by nights and guests, a session or interest
name). Each implements core.protocols.Named explicitly so callers can
read and set a label without knowing the storage field.

PricingConfig combines a presentation type with an optional
accommodation option and a processing fee into the total price that
checkout amounts are validated against.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.db import models

from core.exceptions import ValidationError
from core.models import BaseModel

from conferences.verticals import Vertical

CENT = Decimal("0.01")


class PresentationType(BaseModel):
    """Presentation format offered at a conference (oral, poster, listener)."""

    vertical = models.CharField(
        max_length=20,
        choices=Vertical.choices,
        db_index=True,
        help_text="Conference this option belongs to",
    )

    type = models.CharField(
        max_length=100,
        help_text="Presentation type label (e.g., 'Oral Presentation')",
    )

    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price in euros",
    )

    class Meta:
        ordering = ["vertical", "price"]
        verbose_name = "Presentation Type"
        verbose_name_plural = "Presentation Types"

    def __str__(self) -> str:
        return f"{self.type} ({self.get_vertical_display()})"

    @property
    def display_name(self) -> str:
        return self.type

    def set_display_name(self, value: str) -> None:
        self.type = value


class AccommodationOption(BaseModel):
    """Hotel package sold with a registration."""

    vertical = models.CharField(
        max_length=20,
        choices=Vertical.choices,
        db_index=True,
        help_text="Conference this option belongs to",
    )

    nights = models.PositiveSmallIntegerField(
        help_text="Number of nights included",
    )

    guests = models.PositiveSmallIntegerField(
        help_text="Number of guests included",
    )

    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price in euros",
    )

    label = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Optional label overriding the generated nights/guests text",
    )

    class Meta:
        ordering = ["vertical", "nights", "guests"]
        verbose_name = "Accommodation Option"
        verbose_name_plural = "Accommodation Options"

    def __str__(self) -> str:
        return f"{self.display_name} ({self.get_vertical_display()})"

    @property
    def display_name(self) -> str:
        if self.label:
            return self.label
        return f"{self.nights} night(s), {self.guests} guest(s)"

    def set_display_name(self, value: str) -> None:
        self.label = value


class SessionOption(BaseModel):
    """Scientific session a speaker can submit to."""

    vertical = models.CharField(
        max_length=20,
        choices=Vertical.choices,
        db_index=True,
        help_text="Conference this option belongs to",
    )

    session_name = models.CharField(
        max_length=255,
        help_text="Session title",
    )

    class Meta:
        ordering = ["vertical", "session_name"]
        verbose_name = "Session Option"
        verbose_name_plural = "Session Options"

    def __str__(self) -> str:
        return self.session_name

    @property
    def display_name(self) -> str:
        return self.session_name

    def set_display_name(self, value: str) -> None:
        self.session_name = value


class InterestOption(BaseModel):
    """'Interested in' choice offered on the abstract submission form."""

    vertical = models.CharField(
        max_length=20,
        choices=Vertical.choices,
        db_index=True,
        help_text="Conference this option belongs to",
    )

    option_name = models.CharField(
        max_length=255,
        help_text="Option label",
    )

    class Meta:
        ordering = ["vertical", "option_name"]
        verbose_name = "Interest Option"
        verbose_name_plural = "Interest Options"

    def __str__(self) -> str:
        return self.option_name

    @property
    def display_name(self) -> str:
        return self.option_name

    def set_display_name(self, value: str) -> None:
        self.option_name = value


class PricingConfig(BaseModel):
    """
    Priced line item a checkout amount must match exactly.

    total_price is derived on every save:

        subtotal = presentation price + accommodation price (0 if none)
        total    = subtotal + subtotal * processing_fee_percent / 100

    rounded half-up to cents.
    """

    vertical = models.CharField(
        max_length=20,
        choices=Vertical.choices,
        db_index=True,
        help_text="Conference this pricing belongs to",
    )

    presentation_type = models.ForeignKey(
        PresentationType,
        on_delete=models.PROTECT,
        related_name="pricing_configs",
        help_text="Presentation type being priced",
    )

    accommodation_option = models.ForeignKey(
        AccommodationOption,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="pricing_configs",
        help_text="Optional accommodation package",
    )

    processing_fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0"),
        help_text="Card processing fee added on top of the subtotal",
    )

    total_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        editable=False,
        help_text="Computed total in euros",
    )

    class Meta:
        ordering = ["vertical", "total_price"]
        verbose_name = "Pricing Config"
        verbose_name_plural = "Pricing Configs"

    def __str__(self) -> str:
        return f"PricingConfig({self.pk}, {self.total_price} EUR)"

    def calculate_total_price(self) -> Decimal:
        if self.presentation_type_id is None or self.presentation_type.price is None:
            raise ValidationError(
                "Presentation type or its price must not be empty",
                error_code="PRICING_INCOMPLETE",
            )

        subtotal = self.presentation_type.price
        if self.accommodation_option is not None and self.accommodation_option.price is not None:
            subtotal += self.accommodation_option.price

        fee = subtotal * Decimal(self.processing_fee_percent) / Decimal("100")
        return (subtotal + fee).quantize(CENT, rounding=ROUND_HALF_UP)

    def save(self, *args, **kwargs):
        self.total_price = self.calculate_total_price()
        super().save(*args, **kwargs)

    @property
    def total_price_cents(self) -> int:
        """Total price in cents, as sent to card providers."""
        return int((self.total_price * 100).to_integral_value())
