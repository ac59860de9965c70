"""
WebhookEvent: stored Stripe webhook deliveries.

Every verified delivery is stored before it is processed. The unique
``stripe_event_id`` lets a redelivery of an already processed event be
answered without running the pipeline again, and failed events keep
their payload so the retry task can replay them.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id="evt_123",
        defaults={"event_type": "checkout.session.completed", "payload": payload},
    )
    if event.is_processed:
        return HttpResponse("Already processed", status=200)
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel

from payments.state_machines import WebhookEventStatus

MAX_WEBHOOK_RETRIES = 5


class WebhookEvent(BaseModel):
    """
    Tracks Stripe webhook events for idempotent processing.

    Processing Flow:
        1. Verify signature (nothing stored when it fails)
        2. get_or_create by stripe_event_id
        3. PROCESSED already -> answer 200, skip
        4. mark_processing, run the reconciliation pipeline
        5. mark_processed or mark_failed

    Fields:
        stripe_event_id: Provider event id (evt_xxx)
        event_type: e.g. 'checkout.session.completed'
        endpoint: Which receiver accepted it (payments or discounts)
        vertical: Vertical the event was routed to, once known
        payload: Full event JSON as received
        status / processed_at / error_message / retry_count: Processing state
    """

    class Endpoint(models.TextChoices):
        PAYMENTS = "payments", "Payments"
        DISCOUNTS = "discounts", "Discounts"

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type (e.g., 'checkout.session.completed')",
    )

    endpoint = models.CharField(
        max_length=20,
        choices=Endpoint.choices,
        default=Endpoint.PAYMENTS,
        help_text="Receiver that accepted the delivery",
    )

    vertical = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="Vertical the event was routed to",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(help_text="Full webhook payload (JSON)")

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(null=True, blank=True)

    error_message = models.TextField(null=True, blank=True)

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
            models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        return self.status == WebhookEventStatus.FAILED and self.retry_count < MAX_WEBHOOK_RETRIES

    # ==========================================================================
    # Helper Methods (caller saves)
    # ==========================================================================

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
