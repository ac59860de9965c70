"""
Reconciliation of provider events with local payment records.

A verified webhook (or a pulled session status) is turned into an
EventObject, then runs through:

    MatchingEngine  →  StateApplier  →  DiscountSyncService  →  RegistrationLinker

Matching strategies, first match wins:
    1. Exact key: session_id for session events, payment_intent_id for
       payment intent events. A session event naming a payment intent
       also matches the record an earlier intent event established.
    2. Best amount among the vertical's PENDING records (payment intent
       events only): the single record whose amount equals the event
       amount; zero or several amount matches fall back to the most
       recently created PENDING record.
    3. Create new: a COMPLETED record is synthesized from the event
       fields.

Strategies 2 and 3 only run for success events. Failure and expiry
events update an exact match or nothing. A checkout session carries its
own id, so an unknown session never claims another checkout's row.

Matching and application run under a Redis lock for the
(vertical, amount) bucket and inside one transaction with row locks,
so two deliveries cannot claim the same PENDING row. Discount sync and
registration linking run after the commit; their failures are logged
and never undo the payment update.

Usage:
    from payments.services import ReconciliationService

    result = ReconciliationService.apply_event(
        "checkout.session.completed", event_object, vertical=Vertical.NURSING
    )
    if result.success and result.data.record:
        print(result.data.record.status)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from django_fsm import can_proceed

from core.services import BaseService, ServiceResult

from payments.amounts import cents_to_euros, from_unix_timestamp
from payments.locks import DistributedLock, matching_lock_key
from payments.models import PaymentRecord
from payments.services.discount_sync import DiscountSyncService
from payments.services.registration_linker import RegistrationLinker
from payments.state_machines import PaymentStatus
from payments.webhooks.extraction import PAYMENT_INTENT, SESSION

if TYPE_CHECKING:
    from decimal import Decimal

    from payments.models import CheckoutRecord
    from payments.webhooks.extraction import EventObject


logger = logging.getLogger(__name__)


SESSION_COMPLETED = "checkout.session.completed"
SESSION_EXPIRED = "checkout.session.expired"
INTENT_SUCCEEDED = "payment_intent.succeeded"
INTENT_FAILED = "payment_intent.payment_failed"


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class EventRule:
    """
    How one provider event type maps onto a record.

    Attributes:
        resource: Provider object carried by the event
        target: Status the event moves the record to
        key_field: Record field holding the event object's id
        payment_status: Forced provider status string, None to mirror the event
    """

    resource: str
    target: str
    key_field: str
    payment_status: str | None = None

    @property
    def is_success(self) -> bool:
        return self.target == PaymentStatus.COMPLETED


EVENT_RULES: dict[str, EventRule] = {
    SESSION_COMPLETED: EventRule(SESSION, PaymentStatus.COMPLETED, "session_id"),
    SESSION_EXPIRED: EventRule(SESSION, PaymentStatus.EXPIRED, "session_id", "expired"),
    INTENT_SUCCEEDED: EventRule(
        PAYMENT_INTENT, PaymentStatus.COMPLETED, "payment_intent_id", "paid"
    ),
    INTENT_FAILED: EventRule(PAYMENT_INTENT, PaymentStatus.FAILED, "payment_intent_id", "failed"),
}


class MatchStrategy(str, Enum):
    EXACT = "exact"
    AMOUNT = "amount"
    MOST_RECENT = "most_recent"
    CREATED = "created"
    NONE = "none"


@dataclass
class ReconciliationOutcome:
    """
    What happened to one event.

    Attributes:
        record: Record the event was applied to (None when nothing matched)
        strategy: Which matching strategy found the record
        applied: Whether the record's fields were written
        anomaly: Why an event was not applied to a matched record
    """

    record: PaymentRecord | None
    strategy: MatchStrategy
    applied: bool = False
    anomaly: str | None = None


# =============================================================================
# Matching Engine
# =============================================================================


class MatchingEngine:
    """Finds the PaymentRecord an event refers to. Call inside a transaction."""

    @staticmethod
    def find_exact(rule: EventRule, obj: EventObject) -> PaymentRecord | None:
        records = PaymentRecord.objects.select_for_update()
        record = records.filter(**{rule.key_field: obj.id}).first()
        if record is None and rule.resource == SESSION and obj.payment_intent:
            record = records.filter(payment_intent_id=obj.payment_intent).first()
        return record

    @staticmethod
    def adopt_session_id(record: PaymentRecord, rule: EventRule, obj: EventObject) -> None:
        """Give a record synthesized from an intent event its checkout session id."""
        if rule.resource != SESSION or record.session_id == obj.id:
            return
        if record.session_id == record.payment_intent_id:
            record.session_id = obj.id

    @staticmethod
    def find_pending(vertical: str, amount: Decimal | None) -> tuple[PaymentRecord | None, MatchStrategy]:
        """
        Best PENDING record of the vertical for ``amount``.

        Returns:
            (record, AMOUNT) for a unique amount match,
            (record, MOST_RECENT) otherwise, (None, NONE) if nothing is PENDING
        """
        pending = PaymentRecord.objects.select_for_update().pending().filter(vertical=vertical)

        if amount is not None:
            candidates = list(pending.filter(amount_total=amount).order_by("-created_at", "-id")[:2])
            if len(candidates) == 1:
                return candidates[0], MatchStrategy.AMOUNT
            if len(candidates) > 1:
                logger.warning(
                    "Several PENDING records share the event amount",
                    extra={"vertical": vertical, "amount": str(amount)},
                )

        most_recent = pending.order_by("-created_at", "-id").first()
        if most_recent is not None:
            return most_recent, MatchStrategy.MOST_RECENT
        return None, MatchStrategy.NONE

    @classmethod
    def match(
        cls,
        rule: EventRule,
        obj: EventObject,
        vertical: str,
        allow_fallback: bool,
    ) -> tuple[PaymentRecord | None, MatchStrategy]:
        record = cls.find_exact(rule, obj)
        if record is not None:
            return record, MatchStrategy.EXACT
        if not allow_fallback or rule.resource != PAYMENT_INTENT:
            return None, MatchStrategy.NONE
        return cls.find_pending(vertical, cents_to_euros(obj.amount))

    @staticmethod
    def create_from_event(rule: EventRule, obj: EventObject, vertical: str) -> PaymentRecord:
        """Synthesize a COMPLETED record from the event alone."""
        # Intent events carry no session id; the intent id stands in.
        record = PaymentRecord(
            vertical=vertical,
            session_id=obj.id,
            payment_intent_id=obj.payment_intent,
            customer_email=obj.customer_email,
            amount_total=cents_to_euros(obj.amount),
            currency=obj.currency or "eur",
            status=PaymentStatus.COMPLETED,
            payment_status=rule.payment_status or obj.payment_status or "paid",
            stripe_created_at=from_unix_timestamp(obj.created),
            stripe_expires_at=from_unix_timestamp(obj.expires_at),
            metadata=obj.metadata,
        )
        record.completed_at = timezone.now()
        record.save()
        return record


# =============================================================================
# State Applier
# =============================================================================


class StateApplier:
    """
    Applies an event's transition and field updates to a checkout record.

    Works on PaymentRecord and DiscountRecord alike. Terminal states are
    sticky: an event that would move a COMPLETED, FAILED or EXPIRED
    record to a different status is reported as an anomaly and nothing
    is written.
    """

    @staticmethod
    def target_for(event_type: str, obj: EventObject) -> str | None:
        """
        Status the event moves to, or None for an update without transition.

        A session-completed event only completes the record when the
        session itself reports ``complete``.
        """
        rule = EVENT_RULES[event_type]
        if event_type == SESSION_COMPLETED and (obj.status or "").lower() != "complete":
            return None
        return rule.target

    @classmethod
    def apply(
        cls,
        record: CheckoutRecord,
        rule: EventRule,
        target: str | None,
        obj: EventObject,
    ) -> str | None:
        """
        Mutate ``record`` in memory. Returns an anomaly description or None.

        The caller saves the record when no anomaly is returned.
        """
        if target is None:
            cls._update_fields(record, obj, overwrite_amount=False)
            if obj.payment_status and not record.is_terminal:
                record.payment_status = obj.payment_status
            return None

        if record.status != target and record.is_terminal:
            return f"{record.status} record cannot move to {target}"

        if target == PaymentStatus.COMPLETED:
            transition = record.complete
            kwargs = {"payment_status": rule.payment_status or obj.payment_status or "paid"}
        elif target == PaymentStatus.FAILED:
            transition = record.fail
            kwargs = {}
        else:
            transition = record.expire
            kwargs = {}

        if not can_proceed(transition):
            return f"Transition from {record.status} to {target} not allowed"

        transition(**kwargs)
        cls._update_fields(record, obj, overwrite_amount=target == PaymentStatus.COMPLETED)
        return None

    @staticmethod
    def _update_fields(record: CheckoutRecord, obj: EventObject, overwrite_amount: bool) -> None:
        if obj.payment_intent:
            record.payment_intent_id = obj.payment_intent
        if record.customer_email is None and obj.customer_email:
            record.customer_email = obj.customer_email

        amount = cents_to_euros(obj.amount)
        if amount is not None and (record.amount_total is None or overwrite_amount):
            if record.amount_total != amount:
                logger.info(
                    "Updating record amount from event",
                    extra={
                        "session_id": record.session_id,
                        "old_amount": str(record.amount_total),
                        "new_amount": str(amount),
                    },
                )
            record.amount_total = amount

        if record.currency is None and obj.currency:
            record.currency = obj.currency
        if record.stripe_created_at is None and obj.created:
            record.stripe_created_at = from_unix_timestamp(obj.created)
        if record.stripe_expires_at is None and obj.expires_at:
            record.stripe_expires_at = from_unix_timestamp(obj.expires_at)


# =============================================================================
# Reconciliation Service
# =============================================================================


class ReconciliationService(BaseService):
    """Runs one provider event through match, apply, discount sync and linking."""

    @classmethod
    def apply_event(
        cls,
        event_type: str,
        obj: EventObject,
        vertical: str,
    ) -> ServiceResult[ReconciliationOutcome]:
        """
        Reconcile one event with the payment ledger.

        Args:
            event_type: Provider event type (see EVENT_RULES)
            obj: Normalized event object
            vertical: Vertical the event was routed to

        Returns:
            ServiceResult with ReconciliationOutcome. Fails only when the
            event type is unsupported or the object has no id.
        """
        log = cls.get_logger()
        rule = EVENT_RULES.get(event_type)
        if rule is None:
            return ServiceResult.failure(
                f"Unsupported event type: {event_type}",
                error_code="UNSUPPORTED_EVENT",
            )

        if not obj.id:
            log.error(
                "Event object has no id, skipping",
                extra={"event_type": event_type, "vertical": vertical},
            )
            return ServiceResult.failure(
                "Event object has no id",
                error_code="MISSING_OBJECT_ID",
            )

        target = StateApplier.target_for(event_type, obj)
        allow_fallback = rule.is_success and target is not None
        amount = cents_to_euros(obj.amount)
        log_context = {
            "event_type": event_type,
            "object_id": obj.id,
            "vertical": vertical,
            "amount": str(amount),
        }

        with DistributedLock(
            matching_lock_key(vertical, amount),
            ttl=settings.PAYMENT_MATCH_LOCK_TTL_SECONDS,
        ):
            with transaction.atomic():
                record, strategy = MatchingEngine.match(rule, obj, vertical, allow_fallback)

                if record is None and allow_fallback:
                    record = MatchingEngine.create_from_event(rule, obj, vertical)
                    log.warning(
                        "No PENDING record, created one from event",
                        extra={**log_context, "session_id": record.session_id},
                    )
                    outcome = ReconciliationOutcome(record, MatchStrategy.CREATED, applied=True)
                elif record is None:
                    log.warning("No record matches event", extra=log_context)
                    return ServiceResult.success(ReconciliationOutcome(None, strategy))
                else:
                    MatchingEngine.adopt_session_id(record, rule, obj)
                    anomaly = StateApplier.apply(record, rule, target, obj)
                    if anomaly:
                        log.warning(
                            "Ignoring event for terminal record",
                            extra={
                                **log_context,
                                "session_id": record.session_id,
                                "status": record.status,
                                "anomaly": anomaly,
                            },
                        )
                        return ServiceResult.success(
                            ReconciliationOutcome(record, strategy, applied=False, anomaly=anomaly)
                        )
                    record.save()
                    outcome = ReconciliationOutcome(record, strategy, applied=True)

        log.info(
            "Event reconciled",
            extra={
                **log_context,
                "session_id": record.session_id,
                "strategy": outcome.strategy.value,
                "status": record.status,
            },
        )

        DiscountSyncService.sync(record, event_metadata=obj.metadata)
        if record.status == PaymentStatus.COMPLETED:
            RegistrationLinker.link_after_payment(record, event_email=obj.customer_email)

        return ServiceResult.success(outcome)
