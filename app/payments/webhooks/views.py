"""
Webhook endpoint views for Stripe.

Two endpoints share one flow and differ in signing secret and handler
set:

    /api/v1/payments/webhooks/stripe/            STRIPE_WEBHOOK_SECRET
    /api/v1/payments/webhooks/stripe/discounts/  STRIPE_DISCOUNT_WEBHOOK_SECRET

Each view:
1. Verifies the webhook signature (400 on failure, nothing stored)
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Processes the event synchronously through the handler registry
4. Answers 200 with a short status text, 400 for an unroutable event,
   500 for unexpected errors

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_discount_webhook, stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import WebhookRoutingError, WebhookSignatureError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.webhooks.handlers import dispatch_webhook

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive payment webhooks.

    Discount payloads delivered here are answered with ``ignored``; the
    discount endpoint owns them.

    Returns:
        HttpResponse with status:
        - 200: Event handled (processed, duplicate, ignored, no match)
        - 400: Missing/invalid signature, bad payload or unroutable event
        - 500: Unexpected processing error
    """
    return _receive(request, settings.STRIPE_WEBHOOK_SECRET, WebhookEvent.Endpoint.PAYMENTS)


@csrf_exempt
@require_POST
def stripe_discount_webhook(request: HttpRequest) -> HttpResponse:
    """Receive discount checkout webhooks."""
    return _receive(
        request,
        settings.STRIPE_DISCOUNT_WEBHOOK_SECRET,
        WebhookEvent.Endpoint.DISCOUNTS,
    )


def _receive(request: HttpRequest, secret: str, endpoint: str) -> HttpResponse:
    signature = request.headers.get("Stripe-Signature", "")

    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    # Step 1: Verify signature
    try:
        verified = StripeAdapter.verify_webhook_signature(request.body, signature, secret)
    except WebhookSignatureError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error_code": e.error_code, "endpoint": endpoint},
        )
        return HttpResponse(e.message, status=400)

    stripe_event_id = verified.id
    event_type = verified.type

    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return HttpResponse("Invalid event", status=400)

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={
            "stripe_event_id": stripe_event_id,
            "event_type": event_type,
            "endpoint": endpoint,
        },
    )

    # Step 2: Create/get WebhookEvent (idempotent)
    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={
            "event_type": event_type,
            "endpoint": endpoint,
            "payload": verified.data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    # Step 3: If already processed, return success
    if not created and webhook_event.is_processed:
        logger.info(
            "Webhook already processed, returning success",
            extra={"stripe_event_id": stripe_event_id},
        )
        return HttpResponse("Already processed", status=200)

    # Step 4: Process
    webhook_event.endpoint = endpoint
    webhook_event.mark_processing()
    webhook_event.save(update_fields=["endpoint", "status", "retry_count", "updated_at"])

    try:
        result = dispatch_webhook(webhook_event, event=verified.event, raw=verified.payload)
    except WebhookRoutingError as e:
        logger.warning(
            "Webhook could not be routed to a conference",
            extra={"stripe_event_id": stripe_event_id, "details": e.details},
        )
        _finish(webhook_event, error=e.message)
        return HttpResponse("Unknown conference", status=400)
    except Exception as e:
        logger.error(
            f"Unexpected error processing webhook: {type(e).__name__}",
            extra={"stripe_event_id": stripe_event_id},
            exc_info=True,
        )
        _finish(webhook_event, error=f"{type(e).__name__}: {e}")
        return HttpResponse("Processing error", status=500)

    if not result.success:
        logger.warning(
            "Webhook handler reported failure",
            extra={"stripe_event_id": stripe_event_id, "error_code": result.error_code},
        )
        _finish(webhook_event, error=result.error)
        return HttpResponse(result.error or "Processing failed", status=500)

    _finish(webhook_event)
    return HttpResponse(result.data or "Processed", status=200)


def _finish(webhook_event: WebhookEvent, error: str | None = None) -> None:
    if error is None:
        webhook_event.mark_processed()
    else:
        webhook_event.mark_failed(error)
    webhook_event.save(
        update_fields=["status", "processed_at", "error_message", "vertical", "updated_at"]
    )
