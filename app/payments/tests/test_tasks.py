"""
Tests for payment Celery tasks.

Tests cover:
- Replay of stored webhook events
- Retry scheduling of failed events
- Reset of events stuck in PROCESSING
- The stale payment sweep task
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from core.services import ServiceResult

from payments.models import PaymentRecord, WebhookEvent
from payments.state_machines import PaymentStatus, WebhookEventStatus
from payments.tasks import (
    cleanup_stuck_webhooks,
    expire_stale_payments,
    process_webhook_event,
    retry_failed_webhooks,
)
from payments.tests.factories import (
    PaymentRecordFactory,
    WebhookEventFactory,
    session_payload,
)


@pytest.mark.django_db
class TestProcessWebhookEvent:
    """Tests for process_webhook_event."""

    def test_replays_stored_payload(self):
        """Should reconcile the stored payload and mark the event processed."""
        record = PaymentRecordFactory(session_id="cs_replay_1")
        event = WebhookEventFactory(
            status=WebhookEventStatus.FAILED,
            retry_count=1,
            payload=session_payload("cs_replay_1", amount_total=3000),
        )

        result = process_webhook_event(event.pk)

        event.refresh_from_db()
        record.refresh_from_db()
        assert result["status"] == "processed"
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.retry_count == 2
        assert event.vertical == "nursing"
        assert record.status == PaymentStatus.COMPLETED

    def test_missing_event(self):
        """Should report not_found for an unknown id."""
        assert process_webhook_event(999999)["status"] == "not_found"

    def test_already_processed_is_skipped(self, mocker):
        """Should not dispatch an event that was already processed."""
        dispatch = mocker.patch("payments.webhooks.handlers.dispatch_webhook")
        event = WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        result = process_webhook_event(event.pk)

        assert result["status"] == "already_processed"
        dispatch.assert_not_called()

    def test_unroutable_event_is_failed_without_retry(self):
        """Should fail an event no vertical can be found for."""
        event = WebhookEventFactory(payload=session_payload("cs_nowhere", metadata={}))

        result = process_webhook_event(event.pk)

        event.refresh_from_db()
        assert result["status"] == "unroutable"
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message

    def test_handler_failure_marks_failed(self, mocker):
        """Should store the handler's error message."""
        mocker.patch(
            "payments.webhooks.handlers.dispatch_webhook",
            return_value=ServiceResult.failure("Unsupported", error_code="UNSUPPORTED_EVENT"),
        )
        event = WebhookEventFactory()

        result = process_webhook_event(event.pk)

        event.refresh_from_db()
        assert result["status"] == "handler_failed"
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "Unsupported"


@pytest.mark.django_db
class TestRetryFailedWebhooks:
    """Tests for retry_failed_webhooks."""

    def test_queues_only_retryable_events(self, mocker):
        """Should queue failed events below the retry limit."""
        delay = mocker.patch("payments.tasks.process_webhook_event.delay")
        retryable = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=1)
        WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=5)
        WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        result = retry_failed_webhooks()

        assert result == {"queued_count": 1}
        delay.assert_called_once_with(retryable.pk)


@pytest.mark.django_db
class TestCleanupStuckWebhooks:
    """Tests for cleanup_stuck_webhooks."""

    def test_resets_old_processing_events(self):
        """Should fail events stuck in PROCESSING past the threshold."""
        stuck = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)
        recent = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)
        WebhookEvent.objects.filter(pk=stuck.pk).update(
            updated_at=timezone.now() - timedelta(hours=1)
        )

        result = cleanup_stuck_webhooks()

        stuck.refresh_from_db()
        recent.refresh_from_db()
        assert result == {"reset_count": 1}
        assert stuck.status == WebhookEventStatus.FAILED
        assert recent.status == WebhookEventStatus.PROCESSING


@pytest.mark.django_db
class TestExpireStalePaymentsTask:
    def test_expires_stale_records(self):
        """Should expire PENDING records past their provider expiry."""
        stale = PaymentRecordFactory(stripe_expires_at=timezone.now() - timedelta(minutes=1))

        result = expire_stale_payments()

        assert result == {"expired_count": 1}
        assert PaymentRecord.objects.get(pk=stale.pk).status == PaymentStatus.EXPIRED
