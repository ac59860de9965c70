"""
URL configuration for payments app.

Routes (prefixed with /api/v1/payments/):
    - webhooks/stripe/, webhooks/stripe/discounts/
    - {vertical}/checkout/
    - discounts/, discounts/checkout/, discounts/{session_id}/paid/
    - paypal/orders/, paypal/orders/{order_id}/capture/
    - sweep/
    - records/, records/{session_id}/
    - {session_id}/refresh/, {session_id}/expire/, {session_id}/link/

Fixed prefixes come before the ``{session_id}`` routes.
"""

from django.urls import path

import conferences.converters  # noqa: F401  registers <vertical:>
from payments import views
from payments.webhooks.views import stripe_discount_webhook, stripe_webhook

app_name = "payments"

urlpatterns = [
    # Webhooks
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    path(
        "webhooks/stripe/discounts/",
        stripe_discount_webhook,
        name="stripe_discount_webhook",
    ),
    # Checkout
    path(
        "<vertical:vertical>/checkout/",
        views.CreateCheckoutSessionView.as_view(),
        name="checkout",
    ),
    path("discounts/", views.DiscountRecordListView.as_view(), name="discount_list"),
    path(
        "discounts/checkout/",
        views.CreateDiscountCheckoutView.as_view(),
        name="discount_checkout",
    ),
    path(
        "discounts/<str:session_id>/paid/",
        views.MarkDiscountPaidView.as_view(),
        name="discount_paid",
    ),
    # PayPal
    path("paypal/orders/", views.CreatePayPalOrderView.as_view(), name="paypal_order"),
    path(
        "paypal/orders/<str:order_id>/capture/",
        views.CapturePayPalOrderView.as_view(),
        name="paypal_capture",
    ),
    # Admin
    path("sweep/", views.ExpireStalePaymentsView.as_view(), name="sweep"),
    path("records/", views.PaymentRecordListView.as_view(), name="record_list"),
    path(
        "records/<str:session_id>/",
        views.PaymentRecordDetailView.as_view(),
        name="record_detail",
    ),
    # Per-session operations
    path(
        "<str:session_id>/refresh/",
        views.RefreshPaymentStatusView.as_view(),
        name="refresh",
    ),
    path("<str:session_id>/expire/", views.ExpireSessionView.as_view(), name="expire"),
    path("<str:session_id>/link/", views.LinkRegistrationView.as_view(), name="link"),
]
