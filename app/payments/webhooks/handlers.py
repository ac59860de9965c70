"""
Webhook event handlers for Stripe events.

This module provides a handler registry and the handlers for the
checkout and payment intent events of both webhook endpoints.

Each handler receives the stored WebhookEvent plus the structured
event and raw body of the delivery. Stored events replayed by the
retry task pass the stored payload as both.

Usage:
    from payments.webhooks.handlers import dispatch_webhook

    result = dispatch_webhook(webhook_event, event=verified.event, raw=verified.payload)
    if result.success:
        return HttpResponse(result.data, status=200)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from core.services import ServiceResult

from conferences.verticals import resolve_vertical
from payments.exceptions import WebhookRoutingError
from payments.models import PaymentRecord, WebhookEvent
from payments.services import DiscountService, ReconciliationService
from payments.services.discount_sync import metadata_marks_discount
from payments.services.reconciliation_service import (
    EVENT_RULES,
    INTENT_FAILED,
    INTENT_SUCCEEDED,
    SESSION_COMPLETED,
    SESSION_EXPIRED,
)
from payments.webhooks.extraction import read_event_object

if TYPE_CHECKING:
    from payments.webhooks.extraction import EventObject

logger = logging.getLogger(__name__)

Handler = Callable[[WebhookEvent, Any, Any], ServiceResult]


# =============================================================================
# Handler Registry
# =============================================================================


# Maps (endpoint, event type) to handler functions
WEBHOOK_HANDLERS: dict[tuple[str, str], Handler] = {}


def register_handler(event_type: str, endpoint: str = WebhookEvent.Endpoint.PAYMENTS) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("payment_intent.succeeded")
        def handle_payment_succeeded(webhook_event, event, raw) -> ServiceResult:
            ...
    """

    def decorator(func: Handler) -> Handler:
        WEBHOOK_HANDLERS[(str(endpoint), event_type)] = func
        return func

    return decorator


def dispatch_webhook(
    webhook_event: WebhookEvent,
    event: Any = None,
    raw: Any = None,
) -> ServiceResult[str]:
    """
    Dispatch a webhook event to the handler for its endpoint and type.

    Unknown event types are logged and answered with success so the
    provider does not retry them.

    Returns:
        ServiceResult whose data is the short status text for the response

    Raises:
        WebhookRoutingError: From payment handlers when no vertical matches
    """
    event = event if event is not None else webhook_event.payload
    raw = raw if raw is not None else webhook_event.payload
    handler = WEBHOOK_HANDLERS.get((webhook_event.endpoint, webhook_event.event_type))

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "endpoint": webhook_event.endpoint,
            },
        )
        return ServiceResult.success("Unhandled event type")

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event, event, raw)


# =============================================================================
# Vertical Routing
# =============================================================================


def route_vertical(event_type: str, obj: EventObject) -> str:
    """
    Vertical for a payment event.

    Checkout metadata productName first, then the checkout URLs, then
    the vertical of a record already holding the event's key.

    Raises:
        WebhookRoutingError: If nothing identifies the vertical
    """
    vertical = resolve_vertical(product_name=obj.metadata.get("productName"), urls=obj.urls)
    if vertical is not None:
        return vertical.value

    rule = EVENT_RULES[event_type]
    if obj.id:
        existing = (
            PaymentRecord.objects.filter(**{rule.key_field: obj.id})
            .values_list("vertical", flat=True)
            .first()
        )
        if existing:
            return existing

    raise WebhookRoutingError(
        "Event cannot be routed to a conference",
        details={"event_type": event_type, "object_id": obj.id},
    )


# =============================================================================
# Payment Endpoint Handlers
# =============================================================================


def _reconcile(webhook_event: WebhookEvent, event: Any, raw: Any) -> ServiceResult[str]:
    event_type = webhook_event.event_type
    obj = read_event_object(event, raw, EVENT_RULES[event_type].resource)

    if metadata_marks_discount(obj.metadata):
        logger.info(
            "Discount payload on payment endpoint, ignoring",
            extra={"stripe_event_id": webhook_event.stripe_event_id, "object_id": obj.id},
        )
        return ServiceResult.success("ignored")

    if not obj.id:
        logger.error(
            f"{event_type}: could not extract object id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success("Missing object id, skipped")

    vertical = route_vertical(event_type, obj)
    webhook_event.vertical = vertical

    result = ReconciliationService.apply_event(event_type, obj, vertical=vertical)
    if not result.success:
        return result

    outcome = result.data
    if outcome.record is None:
        return ServiceResult.success("No matching record")
    if outcome.anomaly:
        return ServiceResult.success("Ignored for terminal record")
    return ServiceResult.success(f"Processed ({outcome.strategy.value})")


@register_handler(SESSION_COMPLETED)
def handle_checkout_session_completed(webhook_event, event, raw) -> ServiceResult[str]:
    """Complete the matched record when the session reports ``complete``."""
    return _reconcile(webhook_event, event, raw)


@register_handler(SESSION_EXPIRED)
def handle_checkout_session_expired(webhook_event, event, raw) -> ServiceResult[str]:
    return _reconcile(webhook_event, event, raw)


@register_handler(INTENT_SUCCEEDED)
def handle_payment_intent_succeeded(webhook_event, event, raw) -> ServiceResult[str]:
    """
    Complete the record for a successful charge.

    Intent ids are often unknown locally, so this is where the amount
    heuristic and record creation usually kick in.
    """
    return _reconcile(webhook_event, event, raw)


@register_handler(INTENT_FAILED)
def handle_payment_intent_failed(webhook_event, event, raw) -> ServiceResult[str]:
    return _reconcile(webhook_event, event, raw)


# =============================================================================
# Discount Endpoint Handlers
# =============================================================================


def _apply_discount(webhook_event: WebhookEvent, event: Any, raw: Any) -> ServiceResult[str]:
    event_type = webhook_event.event_type
    obj = read_event_object(event, raw, EVENT_RULES[event_type].resource)

    result = DiscountService.apply_event(event_type, obj)
    if not result.success:
        if result.error_code == "MISSING_OBJECT_ID":
            return ServiceResult.success("Missing object id, skipped")
        return result

    outcome = result.data
    if outcome.record is None:
        return ServiceResult.success("No matching discount")
    webhook_event.vertical = outcome.record.vertical
    if outcome.anomaly:
        return ServiceResult.success("Ignored for terminal record")
    return ServiceResult.success("Processed")


for _event_type in EVENT_RULES:
    register_handler(_event_type, endpoint=WebhookEvent.Endpoint.DISCOUNTS)(_apply_discount)
