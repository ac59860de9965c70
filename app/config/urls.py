"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/conferences/           - Conference endpoints
        {vertical}/pricing/        - Pricing options
        {vertical}/registrations/  - Registration form submission
    /api/v1/payments/              - Payment endpoints
        webhooks/stripe/           - Stripe webhook endpoint (POST)
        webhooks/stripe/discounts/ - Stripe discount webhook endpoint (POST)
        {vertical}/checkout/       - Create checkout session
        discounts/checkout/        - Create discount checkout session
        discounts/{id}/paid/       - Mark discount paid (staff)
        paypal/orders/             - Create PayPal order
        paypal/orders/{id}/capture/ - Capture PayPal order
        {session_id}/refresh/      - Refresh status from Stripe
        {session_id}/expire/       - Expire session (staff)
        {session_id}/link/         - Link registration form (staff)
        sweep/                     - Expire stale records (staff)
        records/                   - List payment records (staff)
        records/{session_id}/      - Payment record detail (staff)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Conferences
    path("conferences/", include("conferences.urls")),
    # Payments
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Conference Payments Admin"
admin.site.site_title = "Conference Payments"
admin.site.index_title = "Payments and registrations"
