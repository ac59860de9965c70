"""
Celery tasks for payment processing.

This module provides async tasks for:
- Replaying stored Stripe webhook events
- Retrying failed webhook events
- Resetting webhook events stuck in PROCESSING
- Expiring stale PENDING payment records

Usage:
    from payments.tasks import expire_stale_payments

    # Run the sweep now (celery-beat runs it every 15 minutes)
    expire_stale_payments.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from payments.exceptions import WebhookRoutingError
from payments.models import WebhookEvent
from payments.models.webhook_event import MAX_WEBHOOK_RETRIES
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

STUCK_PROCESSING_THRESHOLD_MINUTES = 30
RETRY_BATCH_SIZE = 100


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    dont_autoretry_for=(WebhookRoutingError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: int) -> dict:
    """
    Replay a stored webhook event.

    The stored payload stands in for both the structured event and the
    raw body, so extraction works the same way as on first delivery.

    Args:
        webhook_event_id: Primary key of the WebhookEvent

    Returns:
        Dict with processing result status

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    # Import here to avoid circular imports
    from payments.webhooks.handlers import dispatch_webhook

    try:
        webhook_event = WebhookEvent.objects.get(pk=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": webhook_event_id},
        )
        return {"status": "not_found", "webhook_event_id": webhook_event_id}

    # Check if already processed (idempotency)
    if webhook_event.is_processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return {"status": "already_processed", "webhook_event_id": webhook_event_id}

    webhook_event.mark_processing()
    webhook_event.save()

    try:
        result = dispatch_webhook(webhook_event)
    except WebhookRoutingError as e:
        webhook_event.mark_failed(e.message)
        webhook_event.save()
        logger.warning(
            "Stored webhook cannot be routed to a conference",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return {"status": "unroutable", "webhook_event_id": webhook_event_id}
    except Exception as e:
        # Unexpected exception - mark as failed and let Celery retry
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.exception(
            "Webhook processing failed with exception",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": result.error_code,
            },
        )
        return {"status": "handler_failed", "webhook_event_id": webhook_event_id}

    webhook_event.mark_processed()
    webhook_event.save()
    logger.info(
        "Webhook replayed successfully",
        extra={"stripe_event_id": webhook_event.stripe_event_id, "result": result.data},
    )
    return {"status": "processed", "webhook_event_id": webhook_event_id}


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Finds failed webhooks that haven't exceeded max retries and
    re-queues them for processing.

    Returns:
        Dict with count of webhooks queued for retry
    """
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=MAX_WEBHOOK_RETRIES,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook in failed_webhooks:
        process_webhook_event.delay(webhook.pk)
        queued_count += 1
        logger.info(
            "Queued failed webhook for retry",
            extra={
                "stripe_event_id": webhook.stripe_event_id,
                "retry_count": webhook.retry_count,
            },
        )

    logger.info(
        f"Queued {queued_count} failed webhooks for retry",
        extra={"queued_count": queued_count},
    )
    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Reset webhooks left in PROCESSING by a crashed worker to FAILED.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "stripe_event_id": webhook.stripe_event_id,
                "stuck_since": webhook.updated_at.isoformat(),
            },
        )

    return {"reset_count": reset_count}


# =============================================================================
# Payment Record Maintenance
# =============================================================================


@shared_task
def expire_stale_payments() -> dict:
    """
    Flip PENDING payment records past their provider expiry to EXPIRED.

    Scheduled via celery-beat (created by payments migration 0002).

    Returns:
        Dict with count of records expired
    """
    from payments.services import PaymentStatusService

    expired_count = PaymentStatusService.expire_stale_payments()
    return {"expired_count": expired_count}
