"""
Discount checkouts and the discount webhook endpoint.

Discount sessions are tagged with ``source=discount-api`` and
``paymentType=discount-registration`` metadata and stored only in the
discount ledger. Events on the discount webhook endpoint update the
DiscountRecord with the same session id (or payment intent id) using
the payment transition table; nothing is matched heuristically and no
record is created from an event.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction

from core.services import BaseService, ServiceResult

from conferences.verticals import get_descriptor
from payments.adapters import CreateCheckoutSessionParams, StripeAdapter
from payments.amounts import euros_to_cents, from_unix_timestamp
from payments.exceptions import PaymentNotFoundError, PaymentValidationError, StripeError
from payments.models import DiscountRecord
from payments.services.discount_sync import DISCOUNT_PAYMENT_TYPE, DISCOUNT_SOURCE
from payments.services.reconciliation_service import EVENT_RULES, StateApplier
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    from conferences.verticals import Vertical
    from payments.webhooks.extraction import EventObject


@dataclass
class DiscountCheckoutRequest:
    """
    Discount checkout input. ``unit_amount`` is in euros.
    """

    unit_amount: Decimal
    success_url: str
    cancel_url: str
    currency: str = "eur"
    product_name: str | None = None
    description: str | None = None
    customer_email: str | None = None
    name: str = ""
    phone: str = ""
    institute_or_university: str = ""
    country: str = ""

    def metadata(self, product_name: str) -> dict[str, str]:
        values = {
            "source": DISCOUNT_SOURCE,
            "paymentType": DISCOUNT_PAYMENT_TYPE,
            "productName": product_name,
            "customerName": self.name,
            "customerEmail": self.customer_email,
            "customerPhone": self.phone,
            "customerInstitute": self.institute_or_university,
            "customerCountry": self.country,
        }
        return {key: value for key, value in values.items() if value}


@dataclass
class DiscountOutcome:
    record: DiscountRecord | None
    applied: bool = False
    anomaly: str | None = None


class DiscountService(BaseService):
    """Discount session creation and discount ledger updates."""

    @classmethod
    def create_discount_session(
        cls,
        vertical: Vertical | str,
        request: DiscountCheckoutRequest,
        adapter: StripeAdapter | None = None,
    ) -> ServiceResult[DiscountRecord]:
        """
        Create a discount checkout session and store a DiscountRecord.

        The record's status is taken from the provider session status,
        PENDING when unknown.
        """
        log = cls.get_logger()
        if request.unit_amount is None or Decimal(request.unit_amount) <= 0:
            return ServiceResult.from_exception(
                PaymentValidationError("Unit amount must be positive", error_code="INVALID_AMOUNT")
            )

        descriptor = get_descriptor(vertical)
        product_name = request.product_name or descriptor.discount_product_name
        currency = (request.currency or "eur").lower()
        metadata = request.metadata(product_name)

        params = CreateCheckoutSessionParams(
            product_name=product_name,
            unit_amount_cents=euros_to_cents(request.unit_amount),
            quantity=1,
            currency=currency,
            success_url=_discount_url(request.success_url),
            cancel_url=_discount_url(request.cancel_url),
            customer_email=request.customer_email,
            metadata=metadata,
        )

        adapter = adapter or StripeAdapter.from_settings()
        try:
            session = adapter.create_checkout_session(params)
        except StripeError as e:
            return ServiceResult.from_exception(e)

        with cls.atomic():
            record = DiscountRecord.objects.create(
                vertical=descriptor.vertical,
                session_id=session.id,
                payment_intent_id=session.payment_intent,
                customer_email=request.customer_email,
                amount_total=Decimal(request.unit_amount).quantize(Decimal("0.01")),
                currency=currency,
                status=PaymentStatus.from_provider(session.status, default=PaymentStatus.PENDING),
                payment_status=session.payment_status,
                stripe_created_at=from_unix_timestamp(session.created),
                stripe_expires_at=from_unix_timestamp(session.expires_at),
                name=request.name,
                phone=request.phone,
                institute_or_university=request.institute_or_university,
                country=request.country,
                metadata=metadata,
            )

        log.info(
            "Discount session created",
            extra={"vertical": descriptor.vertical.value, "session_id": session.id},
        )
        return ServiceResult.success(record)

    @classmethod
    def apply_event(cls, event_type: str, obj: EventObject) -> ServiceResult[DiscountOutcome]:
        """Apply a discount webhook event to its DiscountRecord."""
        log = cls.get_logger()
        rule = EVENT_RULES.get(event_type)
        if rule is None:
            return ServiceResult.failure(
                f"Unsupported event type: {event_type}",
                error_code="UNSUPPORTED_EVENT",
            )
        if not obj.id:
            log.error("Discount event object has no id", extra={"event_type": event_type})
            return ServiceResult.failure("Event object has no id", error_code="MISSING_OBJECT_ID")

        with transaction.atomic():
            record = (
                DiscountRecord.objects.select_for_update()
                .filter(**{rule.key_field: obj.id})
                .first()
            )
            if record is None:
                log.warning(
                    "No discount record for event",
                    extra={"event_type": event_type, "object_id": obj.id},
                )
                return ServiceResult.success(DiscountOutcome(None))

            target = StateApplier.target_for(event_type, obj)
            anomaly = StateApplier.apply(record, rule, target, obj)
            if anomaly:
                log.warning(
                    "Ignoring discount event for terminal record",
                    extra={"session_id": record.session_id, "anomaly": anomaly},
                )
                return ServiceResult.success(DiscountOutcome(record, anomaly=anomaly))
            record.save()

        log.info(
            "Discount record updated",
            extra={"session_id": record.session_id, "status": record.status},
        )
        return ServiceResult.success(DiscountOutcome(record, applied=True))

    @classmethod
    def mark_paid(cls, session_id: str) -> ServiceResult[DiscountRecord]:
        """Manually mark a discount checkout COMPLETED/paid."""
        with transaction.atomic():
            record = DiscountRecord.objects.select_for_update().filter(session_id=session_id).first()
            if record is None:
                return ServiceResult.from_exception(
                    PaymentNotFoundError(
                        f"Discount record {session_id} not found",
                        details={"session_id": session_id},
                    )
                )
            if record.is_terminal and record.status != PaymentStatus.COMPLETED:
                return ServiceResult.failure(
                    f"{record.status} discount cannot be marked paid",
                    error_code="INVALID_TRANSITION",
                )
            record.complete(payment_status="paid")
            record.save()

        cls.get_logger().info("Discount marked paid", extra={"session_id": session_id})
        return ServiceResult.success(record)


def _discount_url(url: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}session_id={{CHECKOUT_SESSION_ID}}&type=discount"
