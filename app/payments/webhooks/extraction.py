"""
Field extraction from webhook payloads.

The structured read goes through the Stripe SDK object attached to the
verified event. When that object is missing, of the wrong type or
unreadable, the same fields are pulled from the raw request text by
walking ``data`` → ``object`` in the parsed JSON tree.

Extraction is best effort: malformed JSON, a missing ``data`` key or a
missing field yields None for that field and never raises.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

SESSION = "checkout.session"
PAYMENT_INTENT = "payment_intent"

SESSION_FIELDS = (
    "id",
    "customer_email",
    "payment_intent",
    "payment_status",
    "status",
    "currency",
    "amount_total",
)
INTENT_FIELDS = ("id", "status", "amount", "currency")

RESOURCE_FIELDS = {
    SESSION: SESSION_FIELDS,
    PAYMENT_INTENT: INTENT_FIELDS,
}

_SCALARS = (str, int, float, bool)


def _parse(raw: str | bytes | dict | None) -> dict[str, Any] | None:
    if isinstance(raw, dict):
        return raw
    if raw is None:
        return None
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _event_object(raw) -> dict[str, Any] | None:
    parsed = _parse(raw)
    if parsed is None:
        return None
    data = parsed.get("data")
    if not isinstance(data, dict):
        return None
    obj = data.get("object")
    return obj if isinstance(obj, dict) else None


def extract_event_fields(raw, resource: str) -> dict[str, Any]:
    """
    Pull the fields of ``resource`` out of a raw event body.

    Args:
        raw: Event JSON text (str/bytes) or an already parsed dict
        resource: SESSION or PAYMENT_INTENT

    Returns:
        Dict with every field name of the resource; absent, nested or
        unreadable values are None.

        >>> extract_event_fields('{"data":{"object":{"id":"cs_test_123"}}}', SESSION)["id"]
        'cs_test_123'
    """
    names = RESOURCE_FIELDS.get(resource, ())
    obj = _event_object(raw) or {}
    fields = {}
    for name in names:
        value = obj.get(name)
        fields[name] = value if isinstance(value, _SCALARS) else None
    return fields


def extract_metadata(raw) -> dict[str, str]:
    """``data.object.metadata`` from the raw body, or an empty dict."""
    obj = _event_object(raw) or {}
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        return {}
    return {str(k): str(v) for k, v in metadata.items() if isinstance(v, _SCALARS)}


@dataclass
class EventObject:
    """
    Provider object carried by a webhook event, normalized for matching.

    ``amount`` is in cents: ``amount_total`` for sessions and ``amount``
    for payment intents.
    """

    resource: str
    id: str | None = None
    status: str | None = None
    payment_status: str | None = None
    payment_intent: str | None = None
    customer_email: str | None = None
    amount: int | None = None
    currency: str | None = None
    created: int | None = None
    expires_at: int | None = None
    success_url: str | None = None
    cancel_url: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    from_fallback: bool = False

    @property
    def urls(self) -> tuple[str, ...]:
        return tuple(url for url in (self.success_url, self.cancel_url) if url)


def _structured(obj, resource: str) -> EventObject:
    """Read a Stripe object or dict; raises on a missing id or wrong type."""
    expected = "checkout.session" if resource == SESSION else "payment_intent"
    object_type = obj.get("object")
    if object_type is not None and object_type != expected:
        raise TypeError(f"Expected {expected} object, got {object_type}")

    if resource == SESSION:
        payment_intent = obj.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id")
        email = obj.get("customer_email")
        if not email:
            email = (obj.get("customer_details") or {}).get("email")
        amount = obj.get("amount_total")
    else:
        payment_intent = obj["id"]
        email = obj.get("receipt_email")
        amount = obj.get("amount")

    return EventObject(
        resource=resource,
        id=obj["id"],
        status=obj.get("status"),
        payment_status=obj.get("payment_status"),
        payment_intent=payment_intent,
        customer_email=email,
        amount=amount,
        currency=obj.get("currency"),
        created=obj.get("created"),
        expires_at=obj.get("expires_at"),
        success_url=obj.get("success_url"),
        cancel_url=obj.get("cancel_url"),
        metadata={str(k): str(v) for k, v in (obj.get("metadata") or {}).items()},
    )


def _fallback(raw, resource: str) -> EventObject:
    fields = extract_event_fields(raw, resource)
    obj = _event_object(raw) or {}

    def scalar(name):
        value = obj.get(name)
        return value if isinstance(value, _SCALARS) else None

    amount_key = "amount_total" if resource == SESSION else "amount"
    return EventObject(
        resource=resource,
        id=fields.get("id"),
        status=fields.get("status"),
        payment_status=fields.get("payment_status"),
        payment_intent=(
            fields.get("payment_intent") if resource == SESSION else fields.get("id")
        ),
        customer_email=fields.get("customer_email") or scalar("receipt_email"),
        amount=fields.get(amount_key),
        currency=fields.get("currency"),
        created=scalar("created"),
        expires_at=scalar("expires_at"),
        success_url=scalar("success_url"),
        cancel_url=scalar("cancel_url"),
        metadata=extract_metadata(raw),
        from_fallback=True,
    )


def read_event_object(event, raw, resource: str) -> EventObject:
    """
    Read ``data.object`` of a verified event, falling back to the raw text.

    Args:
        event: Stripe event (or dict) from signature verification
        raw: Raw request body
        resource: SESSION or PAYMENT_INTENT
    """
    try:
        obj = event["data"]["object"]
        return _structured(obj, resource)
    except (KeyError, TypeError, AttributeError) as e:
        logger.info(
            "Structured event read failed, using raw JSON extraction",
            extra={"resource": resource, "reason": str(e)},
        )
    return _fallback(raw, resource)
