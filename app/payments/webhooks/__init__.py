"""
Webhook handling for payment events from Stripe.

- extraction: structured and raw-JSON reading of event objects
- handlers: handler registry and the per-event handlers
- views: the payment and discount webhook endpoints

Import from the submodules directly.
"""
