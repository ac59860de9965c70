"""
Pull-based status maintenance for payment records.

- refresh_payment_status: re-fetch a Stripe session and re-run the
  reconciliation pipeline exactly as the webhook path would
- expire_session: expire an open Stripe session and apply EXPIRED
- expire_stale_payments: flip PENDING records past their provider
  expiry to EXPIRED (no discount sync, no linking)

Provider failures come back as ServiceResult failures and leave local
state untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult

from payments.adapters import StripeAdapter
from payments.exceptions import PaymentNotFoundError, StripeError
from payments.models import PaymentRecord
from payments.services.reconciliation_service import (
    SESSION_COMPLETED,
    SESSION_EXPIRED,
    ReconciliationService,
)
from payments.state_machines import PaymentStatus
from payments.webhooks.extraction import SESSION, EventObject

if TYPE_CHECKING:
    from datetime import datetime

    from payments.adapters import CheckoutSessionResult


SESSION_STATUS_EVENTS = {
    PaymentStatus.COMPLETED: SESSION_COMPLETED,
    PaymentStatus.EXPIRED: SESSION_EXPIRED,
}


def session_event_object(session: CheckoutSessionResult) -> EventObject:
    """Normalize a retrieved Checkout Session like a webhook payload."""
    return EventObject(
        resource=SESSION,
        id=session.id,
        status=session.status,
        payment_status=session.payment_status,
        payment_intent=session.payment_intent,
        customer_email=session.customer_email,
        amount=session.amount_total,
        currency=session.currency,
        created=session.created,
        expires_at=session.expires_at,
        success_url=session.success_url,
        metadata=session.metadata,
    )


class PaymentStatusService(BaseService):
    """Status refresh, session expiry and the stale sweep."""

    @classmethod
    def refresh_payment_status(
        cls,
        session_id: str,
        adapter: StripeAdapter | None = None,
    ) -> ServiceResult[PaymentRecord]:
        """
        Re-fetch a session from the provider and reconcile it.

        PayPal sessions are returned as stored. Stripe session status maps
        ``complete`` → COMPLETED, ``expired`` → EXPIRED, ``open`` → PENDING.

        Returns:
            ServiceResult with the (refreshed) PaymentRecord
        """
        log = cls.get_logger()
        record = PaymentRecord.objects.filter(session_id=session_id).first()
        if record is None:
            return ServiceResult.from_exception(
                PaymentNotFoundError(
                    f"Payment record {session_id} not found",
                    details={"session_id": session_id},
                )
            )

        if record.is_paypal:
            return ServiceResult.success(record)

        adapter = adapter or StripeAdapter.from_settings()
        try:
            session = adapter.retrieve_session(session_id)
        except StripeError as e:
            log.error(
                "Status refresh failed at provider",
                extra={"session_id": session_id, "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

        provider_status = PaymentStatus.from_provider(session.status, default=PaymentStatus.PENDING)
        event_type = SESSION_STATUS_EVENTS.get(provider_status)
        log.info(
            "Refreshed session from provider",
            extra={
                "session_id": session_id,
                "provider_status": session.status,
                "mapped_status": provider_status,
            },
        )

        if event_type is None:
            return ServiceResult.success(record)

        result = ReconciliationService.apply_event(
            event_type, session_event_object(session), vertical=record.vertical
        )
        if not result.success:
            return ServiceResult.failure(result.error, error_code=result.error_code)

        record.refresh_from_db()
        return ServiceResult.success(record)

    @classmethod
    def expire_session(
        cls,
        session_id: str,
        adapter: StripeAdapter | None = None,
    ) -> ServiceResult[PaymentRecord]:
        """Expire an open Stripe session and mark its record EXPIRED."""
        record = PaymentRecord.objects.filter(session_id=session_id).first()
        if record is None:
            return ServiceResult.from_exception(
                PaymentNotFoundError(
                    f"Payment record {session_id} not found",
                    details={"session_id": session_id},
                )
            )
        if record.is_paypal:
            return ServiceResult.failure(
                "PayPal orders cannot be expired",
                error_code="UNSUPPORTED_PROVIDER",
            )

        adapter = adapter or StripeAdapter.from_settings()
        try:
            session = adapter.expire_session(session_id)
        except StripeError as e:
            return ServiceResult.from_exception(e)

        result = ReconciliationService.apply_event(
            SESSION_EXPIRED, session_event_object(session), vertical=record.vertical
        )
        if not result.success:
            return ServiceResult.failure(result.error, error_code=result.error_code)
        if result.data.anomaly:
            return ServiceResult.failure(result.data.anomaly, error_code="INVALID_TRANSITION")

        record.refresh_from_db()
        return ServiceResult.success(record)

    @classmethod
    def expire_stale_payments(cls, now: datetime | None = None) -> int:
        """
        Flip PENDING records whose provider session has expired.

        Returns:
            Number of records moved to EXPIRED
        """
        now = now or timezone.now()
        count = 0
        with transaction.atomic():
            for record in PaymentRecord.objects.select_for_update().stale(now):
                record.expire()
                record.save()
                count += 1

        cls.get_logger().info("Stale payment sweep finished", extra={"expired_count": count})
        return count
