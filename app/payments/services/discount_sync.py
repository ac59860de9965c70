"""
One-way sync from the payment ledger to the discount ledger.

A payment is a discount payment when its checkout metadata (stored on
the record, or carried by the event) says so:

    source == "discount-api"
    paymentType == "discount-registration"
    productName contains "discount" (any case)

Only when no metadata is available at all does a pre-existing
DiscountRecord with the same session id count as evidence. A plain
payment never creates a DiscountRecord.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import transaction

from core.services import BaseService

from payments.models import DiscountRecord

if TYPE_CHECKING:
    from collections.abc import Mapping

    from payments.models import PaymentRecord

DISCOUNT_SOURCE = "discount-api"
DISCOUNT_PAYMENT_TYPE = "discount-registration"

SYNCED_FIELDS = (
    "customer_email",
    "amount_total",
    "currency",
    "payment_intent_id",
    "stripe_created_at",
    "stripe_expires_at",
    "payment_status",
    "status",
    "completed_at",
    "failed_at",
    "expired_at",
)


def metadata_marks_discount(metadata: Mapping[str, str] | None) -> bool:
    if not metadata:
        return False
    if metadata.get("source") == DISCOUNT_SOURCE:
        return True
    if metadata.get("paymentType") == DISCOUNT_PAYMENT_TYPE:
        return True
    return "discount" in (metadata.get("productName") or "").lower()


def is_discount_payment(
    record: PaymentRecord,
    event_metadata: Mapping[str, str] | None = None,
) -> bool:
    """Classify ``record`` as a discount payment."""
    stored = record.metadata or {}
    if stored or event_metadata:
        return metadata_marks_discount(stored) or metadata_marks_discount(event_metadata)
    return DiscountRecord.objects.filter(session_id=record.session_id).exists()


class DiscountSyncService(BaseService):
    """Upserts the DiscountRecord shadowing a discount payment."""

    @classmethod
    def sync(
        cls,
        record: PaymentRecord,
        event_metadata: Mapping[str, str] | None = None,
    ) -> DiscountRecord | None:
        """
        Copy ``record`` onto its DiscountRecord when it is a discount payment.

        Returns the synced DiscountRecord, or None when the payment is not
        a discount or the sync failed. Never raises.
        """
        log = cls.get_logger()
        try:
            if not is_discount_payment(record, event_metadata):
                return None

            with transaction.atomic():
                discount, created = DiscountRecord.objects.select_for_update().get_or_create(
                    session_id=record.session_id,
                    defaults={"vertical": record.vertical},
                )
                for name in SYNCED_FIELDS:
                    setattr(discount, name, getattr(record, name))
                if not discount.metadata:
                    discount.metadata = dict(record.metadata or event_metadata or {})
                discount.save()

            log.info(
                "Discount record synced",
                extra={
                    "session_id": record.session_id,
                    "discount_created": created,
                    "status": discount.status,
                },
            )
            return discount
        except Exception:
            log.exception(
                "Discount sync failed",
                extra={"session_id": record.session_id},
            )
            return None
