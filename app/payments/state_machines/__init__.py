"""
State machine enums for payment models.
"""

from payments.state_machines.states import (
    PaymentProvider,
    PaymentStatus,
    WebhookEventStatus,
)

__all__ = [
    "PaymentProvider",
    "PaymentStatus",
    "WebhookEventStatus",
]
