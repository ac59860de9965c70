"""
Payments app: checkout ledgers and their reconciliation.

This app handles:
- Stripe checkout sessions and PayPal orders
- PaymentRecord and DiscountRecord ledgers
- Webhook verification, storage and dispatch
- Matching provider events to records and applying status transitions
- Linking completed payments to registration forms

Related apps:
    - conferences: Verticals, pricing configs and registration forms

Usage:
    from payments.services import ReconciliationService

    result = ReconciliationService.apply_event(event_type, obj, vertical="nursing")
    if result.success:
        record = result.data.record
"""
