"""
Payments app configuration.

This app provides the payment ledgers and their reconciliation:
- PaymentRecord and DiscountRecord ledgers
- Stripe and PayPal adapters
- Webhook receivers and the reconciliation pipeline
- Stale-record sweep
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
