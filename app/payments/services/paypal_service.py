"""
PayPal order creation and capture.

PayPal rows live in the same PaymentRecord ledger as Stripe rows. Their
session id carries the ``PAYPAL_`` prefix and the provider order id is
kept in ``payment_intent_id``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction
from django.utils import timezone

from core.exceptions import ConflictError, NotFoundError
from core.services import BaseService, ServiceResult

from conferences.services import PricingService
from conferences.verticals import get_descriptor
from payments.adapters import PayPalAdapter
from payments.exceptions import PaymentNotFoundError, PaymentValidationError, PayPalError
from payments.models import PAYPAL_SESSION_PREFIX, PaymentRecord
from payments.services.discount_sync import DiscountSyncService
from payments.services.registration_linker import RegistrationLinker
from payments.state_machines import PaymentProvider, PaymentStatus

if TYPE_CHECKING:
    from conferences.verticals import Vertical


@dataclass
class PayPalOrderRequest:
    customer_email: str | None
    amount: Decimal | None
    currency: str | None = None
    customer_name: str | None = None
    phone: str | None = None
    country: str | None = None
    institute_or_university: str | None = None
    pricing_config_id: int | None = None
    success_url: str | None = None
    cancel_url: str | None = None


@dataclass
class PayPalOrder:
    session_id: str
    order_id: str
    approval_url: str | None
    record: PaymentRecord


def new_paypal_session_id() -> str:
    millis = int(timezone.now().timestamp() * 1000)
    return f"{PAYPAL_SESSION_PREFIX}ORDER_{millis}"


class PayPalService(BaseService):
    """Creates and captures PayPal orders."""

    @classmethod
    def create_order(
        cls,
        vertical: Vertical | str,
        request: PayPalOrderRequest,
        adapter: PayPalAdapter | None = None,
    ) -> ServiceResult[PayPalOrder]:
        """
        Create a PayPal order and store a PENDING record.

        Requires a payer email and a positive amount. The currency is
        passed through (lowercased, default EUR).
        """
        log = cls.get_logger()
        descriptor = get_descriptor(vertical)

        try:
            if not (request.customer_email or "").strip():
                raise PaymentValidationError(
                    "Customer email is required for PayPal orders",
                    error_code="EMAIL_REQUIRED",
                )
            if request.amount is None or Decimal(request.amount) <= 0:
                raise PaymentValidationError(
                    "Amount must be greater than zero",
                    error_code="INVALID_AMOUNT",
                )
            pricing_config = None
            if request.pricing_config_id is not None:
                pricing_config = PricingService.get_pricing_config(
                    request.pricing_config_id, vertical=descriptor.vertical
                )
        except (PaymentValidationError, NotFoundError) as e:
            return ServiceResult.from_exception(e)

        amount = Decimal(request.amount).quantize(Decimal("0.01"))
        currency = (request.currency or "eur").lower()
        session_id = new_paypal_session_id()

        adapter = adapter or PayPalAdapter.from_settings()
        try:
            order = adapter.create_order(
                amount=amount,
                currency=currency,
                reference_id=session_id,
                return_url=request.success_url,
                cancel_url=request.cancel_url,
            )
        except PayPalError as e:
            log.error(
                "PayPal order creation failed",
                extra={"vertical": descriptor.vertical.value, "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

        with cls.atomic():
            record = PaymentRecord.objects.create(
                vertical=descriptor.vertical,
                session_id=session_id,
                payment_intent_id=order.id,
                customer_email=request.customer_email,
                amount_total=amount,
                currency=currency,
                provider=PaymentProvider.PAYPAL,
                status=PaymentStatus.PENDING,
                payment_status="unpaid",
                stripe_created_at=timezone.now(),
                pricing_config=pricing_config,
                metadata={
                    key: str(value)
                    for key, value in {
                        "productName": descriptor.product_name,
                        "customerName": request.customer_name,
                        "customerPhone": request.phone,
                        "customerCountry": request.country,
                        "customerInstitute": request.institute_or_university,
                        "paypalOrderId": order.id,
                    }.items()
                    if value
                },
            )

        log.info(
            "PayPal order created",
            extra={"session_id": session_id, "order_id": order.id, "amount": str(amount)},
        )
        return ServiceResult.success(PayPalOrder(session_id, order.id, order.approval_url, record))

    @classmethod
    def capture_order(
        cls,
        order_id: str,
        session_id: str | None = None,
        adapter: PayPalAdapter | None = None,
    ) -> ServiceResult[PaymentRecord]:
        """
        Capture an approved order and settle its record.

        The record is found by its stored order id; a ``session_id``, when
        given, must name that same record.

        COMPLETED at PayPal marks the record COMPLETED/paid and links the
        registration; any other provider status marks it FAILED.
        """
        log = cls.get_logger()
        record = PaymentRecord.objects.filter(
            provider=PaymentProvider.PAYPAL, payment_intent_id=order_id
        ).first()
        if record is None:
            return ServiceResult.from_exception(
                PaymentNotFoundError(
                    f"PayPal payment record not found for order {order_id}",
                    details={"order_id": order_id, "session_id": session_id},
                )
            )
        if session_id and record.session_id != session_id:
            log.warning(
                "PayPal order does not belong to the given session",
                extra={"order_id": order_id, "session_id": session_id},
            )
            return ServiceResult.from_exception(
                ConflictError(
                    f"PayPal order {order_id} does not belong to session {session_id}",
                    error_code="ORDER_SESSION_MISMATCH",
                    details={"order_id": order_id, "session_id": session_id},
                )
            )
        if record.is_terminal:
            return ServiceResult.success(record)

        adapter = adapter or PayPalAdapter.from_settings()
        try:
            order = adapter.capture_order(order_id)
        except PayPalError as e:
            log.error(
                "PayPal capture failed",
                extra={"order_id": order_id, "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

        with transaction.atomic():
            record = PaymentRecord.objects.select_for_update().get(pk=record.pk)
            if record.is_terminal:
                return ServiceResult.success(record)
            if order.is_completed:
                record.complete(payment_status="paid")
            else:
                record.fail()
            if record.customer_email is None and order.payer_email:
                record.customer_email = order.payer_email
            record.save()

        log.info(
            "PayPal order captured",
            extra={
                "order_id": order_id,
                "session_id": record.session_id,
                "provider_status": order.status,
                "status": record.status,
            },
        )

        DiscountSyncService.sync(record)
        if record.status == PaymentStatus.COMPLETED:
            RegistrationLinker.link_after_payment(record, event_email=order.payer_email)
        return ServiceResult.success(record)
