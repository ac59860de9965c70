"""
Stripe checkout session creation.

Validates the request (EUR only, positive amounts, strict equality with
the pricing config total), creates the hosted session and stores a
PENDING PaymentRecord before the payer is redirected.

Usage:
    from payments.services import CheckoutRequest, CheckoutService

    result = CheckoutService.create_checkout_session(
        Vertical.NURSING,
        CheckoutRequest(
            unit_amount=4500,
            quantity=1,
            success_url="https://nursingmeet2026.com/success",
            cancel_url="https://nursingmeet2026.com/cancel",
            customer_email="jane@example.com",
            pricing_config_id=7,
        ),
    )
    if result.success:
        redirect(result.data.url)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult

from conferences.services import PricingService
from conferences.verticals import get_descriptor
from payments.adapters import CreateCheckoutSessionParams, StripeAdapter
from payments.amounts import cents_to_euros, from_unix_timestamp
from payments.exceptions import (
    CurrencyNotSupportedError,
    PaymentValidationError,
    PricingValidationError,
    StripeError,
)
from payments.models import PaymentRecord
from payments.state_machines import PaymentProvider, PaymentStatus

if TYPE_CHECKING:
    from conferences.models import PricingConfig
    from conferences.verticals import Vertical

CHECKOUT_CURRENCY = "eur"
SESSION_ID_PLACEHOLDER = "session_id={CHECKOUT_SESSION_ID}"


@dataclass
class CheckoutRequest:
    """
    Checkout input from a conference site.

    ``unit_amount`` is in cents; the pricing config total is in euros.
    """

    unit_amount: int
    quantity: int
    success_url: str
    cancel_url: str
    currency: str | None = None
    product_name: str | None = None
    customer_email: str | None = None
    pricing_config_id: int | None = None
    order_reference: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_institute: str | None = None
    customer_country: str | None = None
    registration_type: str | None = None
    presentation_type: str | None = None
    accompanying_person: bool | None = None
    extra_nights: int | None = None
    accommodation_nights: int | None = None
    accommodation_guests: int | None = None

    def metadata(self, product_name: str) -> dict[str, str]:
        values = {
            "productName": product_name,
            "pricingConfigId": self.pricing_config_id,
            "orderReference": self.order_reference,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "customerPhone": self.customer_phone,
            "customerInstitute": self.customer_institute,
            "customerCountry": self.customer_country,
            "registrationType": self.registration_type,
            "presentationType": self.presentation_type,
            "accompanyingPerson": self.accompanying_person,
            "extraNights": self.extra_nights,
            "accommodationNights": self.accommodation_nights,
            "accommodationGuests": self.accommodation_guests,
        }
        return {key: str(value) for key, value in values.items() if value is not None}


@dataclass
class CheckoutSession:
    """What the conference site needs to redirect the payer."""

    session_id: str
    url: str | None
    record: PaymentRecord


def append_query(url: str, query: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"


def validate_currency(currency: str | None) -> str:
    """Default to EUR and reject anything else."""
    if currency is None or currency == "":
        return CHECKOUT_CURRENCY
    if currency.lower() != CHECKOUT_CURRENCY:
        raise CurrencyNotSupportedError(
            f"Only EUR payments are supported, got '{currency}'",
            details={"currency": currency},
        )
    return CHECKOUT_CURRENCY


def validate_pricing(pricing_config: PricingConfig, unit_amount: int, quantity: int) -> None:
    """
    Require the checkout amount to equal the configured total exactly.

    Raises:
        PricingValidationError: total_price * 100 != unit_amount * quantity
    """
    expected = pricing_config.total_price_cents
    actual = unit_amount * quantity
    if expected != actual:
        raise PricingValidationError(
            "Checkout amount does not match pricing config",
            details={
                "pricing_config_id": pricing_config.pk,
                "expected_cents": expected,
                "actual_cents": actual,
            },
        )


class CheckoutService(BaseService):
    """Creates Stripe checkout sessions for registrations."""

    @classmethod
    def create_checkout_session(
        cls,
        vertical: Vertical | str,
        request: CheckoutRequest,
        adapter: StripeAdapter | None = None,
    ) -> ServiceResult[CheckoutSession]:
        """
        Validate, create the Stripe session and store a PENDING record.

        Returns:
            ServiceResult with CheckoutSession. Validation and provider
            failures come back as failures; no record is stored then.
        """
        log = cls.get_logger()
        descriptor = get_descriptor(vertical)

        try:
            currency = validate_currency(request.currency)
            if request.unit_amount <= 0 or request.quantity <= 0:
                raise PaymentValidationError(
                    "unit_amount and quantity must be positive",
                    error_code="INVALID_AMOUNT",
                )

            pricing_config = None
            if request.pricing_config_id is not None:
                pricing_config = PricingService.get_pricing_config(
                    request.pricing_config_id, vertical=descriptor.vertical
                )
                validate_pricing(pricing_config, request.unit_amount, request.quantity)
        except (PaymentValidationError, NotFoundError) as e:
            log.warning(
                "Checkout request rejected",
                extra={"vertical": descriptor.vertical.value, "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

        product_name = request.product_name or descriptor.product_name
        metadata = request.metadata(product_name)
        expires_at = timezone.now() + timedelta(minutes=settings.STRIPE_CHECKOUT_EXPIRY_MINUTES)

        params = CreateCheckoutSessionParams(
            product_name=product_name,
            unit_amount_cents=request.unit_amount,
            quantity=request.quantity,
            currency=currency,
            success_url=append_query(request.success_url, SESSION_ID_PLACEHOLDER),
            cancel_url=request.cancel_url,
            customer_email=request.customer_email,
            metadata=metadata,
            expires_at=int(expires_at.timestamp()),
        )

        adapter = adapter or StripeAdapter.from_settings()
        try:
            session = adapter.create_checkout_session(params)
        except StripeError as e:
            return ServiceResult.from_exception(e)

        with cls.atomic():
            record = PaymentRecord.objects.create(
                vertical=descriptor.vertical,
                session_id=session.id,
                payment_intent_id=session.payment_intent,
                customer_email=request.customer_email or session.customer_email,
                amount_total=cents_to_euros(
                    session.amount_total or request.unit_amount * request.quantity
                ),
                currency=currency,
                status=PaymentStatus.PENDING,
                payment_status=session.payment_status or "unpaid",
                provider=PaymentProvider.STRIPE,
                stripe_created_at=from_unix_timestamp(session.created),
                stripe_expires_at=from_unix_timestamp(session.expires_at),
                pricing_config=pricing_config,
                metadata=metadata,
            )

        log.info(
            "Checkout session created",
            extra={
                "vertical": descriptor.vertical.value,
                "session_id": session.id,
                "amount_total": str(record.amount_total),
                "pricing_config_id": request.pricing_config_id,
            },
        )
        return ServiceResult.success(CheckoutSession(session.id, session.url, record))
