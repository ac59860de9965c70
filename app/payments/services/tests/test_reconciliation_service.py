"""
Tests for ReconciliationService.

Tests cover:
- Exact matching by session id and payment intent id
- Best-amount and most-recent fallbacks for payment intent successes
- Record creation when nothing is PENDING
- Idempotent replays and sticky terminal states
- Discount sync and registration linking after a completion
"""

from decimal import Decimal

import pytest

from conferences.models import RegistrationForm
from conferences.tests.factories import RegistrationFormFactory
from conferences.verticals import Vertical
from payments.models import DiscountRecord, PaymentRecord
from payments.services import MatchStrategy, ReconciliationService
from payments.services.reconciliation_service import (
    INTENT_FAILED,
    INTENT_SUCCEEDED,
    SESSION_COMPLETED,
    SESSION_EXPIRED,
)
from payments.state_machines import PaymentStatus
from payments.tests.factories import PaymentRecordFactory
from payments.webhooks.extraction import PAYMENT_INTENT, SESSION, EventObject


def session_object(session_id, amount=3000, status="complete", **kwargs) -> EventObject:
    defaults = {
        "payment_status": "paid",
        "currency": "eur",
        "metadata": {"productName": "NURSING_REGISTRATION"},
    }
    defaults.update(kwargs)
    return EventObject(resource=SESSION, id=session_id, status=status, amount=amount, **defaults)


def intent_object(intent_id, amount=3000, **kwargs) -> EventObject:
    defaults = {"status": "succeeded", "currency": "eur", "payment_intent": intent_id}
    defaults.update(kwargs)
    return EventObject(resource=PAYMENT_INTENT, id=intent_id, amount=amount, **defaults)


@pytest.mark.django_db
class TestExactMatch:
    """Tests for events that name a known record."""

    def test_session_completed_updates_record(self):
        """Should complete the record and copy intent id and amount."""
        PaymentRecordFactory(session_id="cs_1", amount_total=Decimal("30.00"))

        result = ReconciliationService.apply_event(
            SESSION_COMPLETED,
            session_object("cs_1", amount=3000, payment_intent="pi_1"),
            vertical=Vertical.NURSING,
        )

        record = PaymentRecord.objects.get(session_id="cs_1")
        assert result.success
        assert result.data.strategy == MatchStrategy.EXACT
        assert result.data.applied
        assert record.status == PaymentStatus.COMPLETED
        assert record.payment_status == "paid"
        assert record.payment_intent_id == "pi_1"
        assert record.amount_total == Decimal("30.00")

    def test_intent_succeeded_matches_by_intent_id(self):
        """Should find the record through its payment intent id."""
        record = PaymentRecordFactory(payment_intent_id="pi_known")

        result = ReconciliationService.apply_event(
            INTENT_SUCCEEDED, intent_object("pi_known"), vertical=Vertical.NURSING
        )

        record.refresh_from_db()
        assert result.data.strategy == MatchStrategy.EXACT
        assert record.status == PaymentStatus.COMPLETED

    def test_session_expired(self):
        """Should expire the matched record."""
        record = PaymentRecordFactory(session_id="cs_exp")

        ReconciliationService.apply_event(
            SESSION_EXPIRED,
            session_object("cs_exp", status="expired", payment_status="unpaid"),
            vertical=Vertical.NURSING,
        )

        record.refresh_from_db()
        assert record.status == PaymentStatus.EXPIRED
        assert record.payment_status == "expired"

    def test_intent_failed(self):
        """Should fail the matched record."""
        record = PaymentRecordFactory(payment_intent_id="pi_declined")

        ReconciliationService.apply_event(
            INTENT_FAILED,
            intent_object("pi_declined", status="requires_payment_method"),
            vertical=Vertical.NURSING,
        )

        record.refresh_from_db()
        assert record.status == PaymentStatus.FAILED

    def test_email_is_backfilled_not_overwritten(self):
        """Should fill a missing email but keep an existing one."""
        without_email = PaymentRecordFactory(session_id="cs_no_email", customer_email=None)
        with_email = PaymentRecordFactory(session_id="cs_email", customer_email="a@example.com")

        for session_id in ("cs_no_email", "cs_email"):
            ReconciliationService.apply_event(
                SESSION_COMPLETED,
                session_object(session_id, customer_email="b@example.com"),
                vertical=Vertical.NURSING,
            )

        without_email.refresh_from_db()
        with_email.refresh_from_db()
        assert without_email.customer_email == "b@example.com"
        assert with_email.customer_email == "a@example.com"

    def test_session_after_intent_reuses_record(self):
        """Should complete the intent-created record instead of adding a second one."""
        ReconciliationService.apply_event(
            INTENT_SUCCEEDED, intent_object("pi_2", amount=3000), vertical=Vertical.NURSING
        )

        result = ReconciliationService.apply_event(
            SESSION_COMPLETED,
            session_object("cs_2", amount=3000, payment_intent="pi_2"),
            vertical=Vertical.NURSING,
        )

        records = PaymentRecord.objects.filter(payment_intent_id="pi_2")
        assert result.data.strategy == MatchStrategy.EXACT
        assert [r.session_id for r in records] == ["cs_2"]
        assert records[0].status == PaymentStatus.COMPLETED

    def test_session_intent_match_keeps_real_session_id(self):
        """Should only adopt the session id onto intent-created records."""
        record = PaymentRecordFactory(session_id="cs_first", payment_intent_id="pi_shared")

        ReconciliationService.apply_event(
            SESSION_COMPLETED,
            session_object("cs_second", payment_intent="pi_shared"),
            vertical=Vertical.NURSING,
        )

        record.refresh_from_db()
        assert record.session_id == "cs_first"
        assert record.status == PaymentStatus.COMPLETED
        assert PaymentRecord.objects.count() == 1

    def test_acquires_lock_for_amount_bucket(self, mock_redis_lock):
        """Should serialize matching on the (vertical, amount) lock."""
        PaymentRecordFactory(session_id="cs_lock")

        ReconciliationService.apply_event(
            SESSION_COMPLETED, session_object("cs_lock", amount=3000), vertical=Vertical.NURSING
        )

        key = mock_redis_lock.set.call_args[0][0]
        assert key == "lock:payments:match:nursing:30.00"
        mock_redis_lock.eval.assert_called_once()


@pytest.mark.django_db
class TestFallbackMatching:
    """Tests for success events whose key is unknown."""

    def test_unique_amount_match(self):
        """Should pick the single PENDING record with the event amount."""
        match = PaymentRecordFactory(amount_total=Decimal("30.00"))
        PaymentRecordFactory(amount_total=Decimal("45.00"))

        result = ReconciliationService.apply_event(
            INTENT_SUCCEEDED, intent_object("pi_new", amount=3000), vertical=Vertical.NURSING
        )

        match.refresh_from_db()
        assert result.data.strategy == MatchStrategy.AMOUNT
        assert result.data.record.pk == match.pk
        assert match.status == PaymentStatus.COMPLETED
        assert match.payment_intent_id == "pi_new"

    def test_unknown_session_never_claims_pending_record(self):
        """Should create its own record instead of completing another checkout."""
        alice = PaymentRecordFactory(session_id="cs_alice", amount_total=Decimal("30.00"))

        result = ReconciliationService.apply_event(
            SESSION_COMPLETED,
            session_object("cs_bob", amount=5000, payment_intent="pi_bob"),
            vertical=Vertical.NURSING,
        )

        alice.refresh_from_db()
        bob = PaymentRecord.objects.get(session_id="cs_bob")
        assert result.data.strategy == MatchStrategy.CREATED
        assert alice.status == PaymentStatus.PENDING
        assert alice.amount_total == Decimal("30.00")
        assert alice.payment_intent_id is None
        assert bob.status == PaymentStatus.COMPLETED
        assert bob.amount_total == Decimal("50.00")
        assert bob.payment_intent_id == "pi_bob"

    def test_intent_fallback_keeps_session_id(self):
        """Should never rewrite the session id of a fallback match."""
        match = PaymentRecordFactory(session_id="cs_original", amount_total=Decimal("30.00"))

        ReconciliationService.apply_event(
            INTENT_SUCCEEDED, intent_object("pi_other", amount=3000), vertical=Vertical.NURSING
        )

        match.refresh_from_db()
        assert match.session_id == "cs_original"
        assert match.payment_intent_id == "pi_other"
        assert match.status == PaymentStatus.COMPLETED

    def test_several_amount_matches_use_most_recent_pending(self):
        """Should fall back to the newest PENDING record on ambiguous amounts."""
        PaymentRecordFactory(amount_total=Decimal("30.00"))
        PaymentRecordFactory(amount_total=Decimal("30.00"))
        newest = PaymentRecordFactory(amount_total=Decimal("99.00"))

        result = ReconciliationService.apply_event(
            INTENT_SUCCEEDED, intent_object("pi_amb", amount=3000), vertical=Vertical.NURSING
        )

        assert result.data.strategy == MatchStrategy.MOST_RECENT
        assert result.data.record.pk == newest.pk

    def test_no_amount_match_uses_most_recent_pending(self):
        """Should fall back to the newest PENDING record when no amount matches."""
        PaymentRecordFactory(amount_total=Decimal("45.00"))
        newest = PaymentRecordFactory(amount_total=Decimal("60.00"))

        result = ReconciliationService.apply_event(
            INTENT_SUCCEEDED, intent_object("pi_77", amount=7700), vertical=Vertical.NURSING
        )

        newest.refresh_from_db()
        assert result.data.strategy == MatchStrategy.MOST_RECENT
        assert newest.status == PaymentStatus.COMPLETED
        assert newest.amount_total == Decimal("77.00")

    def test_creates_record_when_nothing_pending(self):
        """Should create a COMPLETED record from the event alone."""
        PaymentRecordFactory(status=PaymentStatus.COMPLETED, payment_status="paid")

        result = ReconciliationService.apply_event(
            INTENT_SUCCEEDED,
            intent_object("pi_2", amount=1000),
            vertical=Vertical.NURSING,
        )

        created = PaymentRecord.objects.get(session_id="pi_2")
        assert result.data.strategy == MatchStrategy.CREATED
        assert created.status == PaymentStatus.COMPLETED
        assert created.amount_total == Decimal("10.00")
        assert created.payment_intent_id == "pi_2"
        assert created.vertical == Vertical.NURSING

    def test_fallback_stays_within_vertical(self):
        """Should not claim a PENDING record of another conference."""
        other = PaymentRecordFactory(vertical=Vertical.OPTICS, amount_total=Decimal("30.00"))

        result = ReconciliationService.apply_event(
            INTENT_SUCCEEDED, intent_object("pi_nurse", amount=3000), vertical=Vertical.NURSING
        )

        other.refresh_from_db()
        assert result.data.strategy == MatchStrategy.CREATED
        assert other.status == PaymentStatus.PENDING

    def test_failure_events_never_fall_back(self):
        """Should leave PENDING records alone for unknown failed intents."""
        pending = PaymentRecordFactory(amount_total=Decimal("30.00"))

        result = ReconciliationService.apply_event(
            INTENT_FAILED, intent_object("pi_unknown", amount=3000), vertical=Vertical.NURSING
        )

        pending.refresh_from_db()
        assert result.success
        assert result.data.record is None
        assert result.data.strategy == MatchStrategy.NONE
        assert pending.status == PaymentStatus.PENDING

    def test_open_session_never_falls_back(self):
        """Should not match or create anything for an unknown open session."""
        pending = PaymentRecordFactory(amount_total=Decimal("30.00"))

        result = ReconciliationService.apply_event(
            SESSION_COMPLETED,
            session_object("cs_unknown", status="open", payment_status="unpaid"),
            vertical=Vertical.NURSING,
        )

        pending.refresh_from_db()
        assert result.data.record is None
        assert pending.status == PaymentStatus.PENDING
        assert PaymentRecord.objects.count() == 1


@pytest.mark.django_db
class TestIdempotencyAndTerminalStates:
    """Tests for replays and sticky terminal states."""

    def test_replaying_completion_is_idempotent(self):
        """Should leave the ledger unchanged when an event is applied twice."""
        PaymentRecordFactory(session_id="cs_twice")
        event = session_object("cs_twice", payment_intent="pi_twice")

        ReconciliationService.apply_event(SESSION_COMPLETED, event, vertical=Vertical.NURSING)
        first = PaymentRecord.objects.get(session_id="cs_twice")
        result = ReconciliationService.apply_event(
            SESSION_COMPLETED, event, vertical=Vertical.NURSING
        )
        second = PaymentRecord.objects.get(session_id="cs_twice")

        assert result.data.anomaly is None
        assert PaymentRecord.objects.count() == 1
        assert second.status == PaymentStatus.COMPLETED
        assert second.completed_at == first.completed_at
        assert second.payment_intent_id == "pi_twice"

    @pytest.mark.parametrize(
        "initial,event_type",
        [
            (PaymentStatus.EXPIRED, SESSION_COMPLETED),
            (PaymentStatus.COMPLETED, SESSION_EXPIRED),
        ],
    )
    def test_terminal_state_is_sticky(self, initial, event_type):
        """Should ignore events that would leave a terminal state."""
        PaymentRecordFactory(session_id="cs_sticky", status=initial)

        result = ReconciliationService.apply_event(
            event_type,
            session_object(
                "cs_sticky", status="complete" if event_type == SESSION_COMPLETED else "expired"
            ),
            vertical=Vertical.NURSING,
        )

        record = PaymentRecord.objects.get(session_id="cs_sticky")
        assert result.success
        assert result.data.applied is False
        assert result.data.anomaly
        assert record.status == initial

    def test_incomplete_session_updates_fields_without_transition(self):
        """Should keep PENDING when the completed session is not complete."""
        record = PaymentRecordFactory(session_id="cs_open", customer_email=None)

        ReconciliationService.apply_event(
            SESSION_COMPLETED,
            session_object(
                "cs_open", status="open", payment_status="unpaid", customer_email="x@example.com"
            ),
            vertical=Vertical.NURSING,
        )

        record.refresh_from_db()
        assert record.status == PaymentStatus.PENDING
        assert record.customer_email == "x@example.com"

    def test_incomplete_session_keeps_terminal_payment_status(self):
        """Should not relabel a completed record as unpaid."""
        record = PaymentRecordFactory(
            session_id="cs_paid", status=PaymentStatus.COMPLETED, payment_status="paid"
        )

        ReconciliationService.apply_event(
            SESSION_COMPLETED,
            session_object("cs_paid", status="open", payment_status="unpaid"),
            vertical=Vertical.NURSING,
        )

        record.refresh_from_db()
        assert record.status == PaymentStatus.COMPLETED
        assert record.payment_status == "paid"


@pytest.mark.django_db
class TestPostProcessing:
    """Tests for discount sync and registration linking."""

    def test_completion_links_registration(self):
        """Should link the payer's most recent registration form."""
        record = PaymentRecordFactory(session_id="cs_link", customer_email="jane@example.com")
        RegistrationFormFactory(email="jane@example.com")
        newest = RegistrationFormFactory(email="Jane@Example.com")

        ReconciliationService.apply_event(
            SESSION_COMPLETED, session_object("cs_link"), vertical=Vertical.NURSING
        )

        newest.refresh_from_db()
        assert newest.payment_record_id == record.pk

    def test_discount_payment_is_synced(self):
        """Should mirror a discount payment into the discount ledger."""
        PaymentRecordFactory(
            session_id="cs_disc",
            metadata={"source": "discount-api", "productName": "NURSING_DISCOUNT_REGISTRATION"},
        )

        ReconciliationService.apply_event(
            SESSION_COMPLETED, session_object("cs_disc"), vertical=Vertical.NURSING
        )

        discount = DiscountRecord.objects.get(session_id="cs_disc")
        assert discount.status == PaymentStatus.COMPLETED
        assert discount.amount_total == Decimal("30.00")

    def test_plain_payment_creates_no_discount(self):
        """Should not create a DiscountRecord for a regular payment."""
        PaymentRecordFactory(session_id="cs_plain")

        ReconciliationService.apply_event(
            SESSION_COMPLETED, session_object("cs_plain"), vertical=Vertical.NURSING
        )

        assert not DiscountRecord.objects.exists()

    def test_linking_failure_does_not_undo_payment(self, mocker):
        """Should keep the completion when linking blows up."""
        mocker.patch.object(
            RegistrationForm.objects,
            "most_recent_for_email",
            side_effect=RuntimeError("db gone"),
        )
        PaymentRecordFactory(session_id="cs_boom")

        result = ReconciliationService.apply_event(
            SESSION_COMPLETED, session_object("cs_boom"), vertical=Vertical.NURSING
        )

        assert result.success
        assert PaymentRecord.objects.get(session_id="cs_boom").status == PaymentStatus.COMPLETED


@pytest.mark.django_db
class TestInvalidEvents:
    def test_unsupported_event_type(self):
        """Should fail for event types without a rule."""
        result = ReconciliationService.apply_event(
            "charge.refunded", session_object("cs_x"), vertical=Vertical.NURSING
        )

        assert not result.success
        assert result.error_code == "UNSUPPORTED_EVENT"

    def test_missing_object_id(self):
        """Should fail when the event object has no id."""
        result = ReconciliationService.apply_event(
            SESSION_COMPLETED, session_object(None), vertical=Vertical.NURSING
        )

        assert result.error_code == "MISSING_OBJECT_ID"
