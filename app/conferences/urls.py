"""
URL configuration for the conferences app.

Routes (prefixed with /api/v1/conferences/):
    - GET  {vertical}/pricing/
    - POST {vertical}/pricing/resolve/
    - POST {vertical}/pricing/recalculate/
    - POST {vertical}/registrations/
    - GET  {vertical}/{kind}/
    - POST {vertical}/{kind}/{option_id}/rename/
"""

from django.urls import path

import conferences.converters  # noqa: F401  registers <vertical:>
from conferences.services import CATALOGUE_OPTIONS
from conferences.views import (
    CatalogueOptionListView,
    CatalogueOptionRenameView,
    PricingConfigListView,
    PricingRecalculateView,
    PricingResolveView,
    RegistrationFormCreateView,
)

app_name = "conferences"

urlpatterns = [
    path("<vertical:vertical>/pricing/", PricingConfigListView.as_view(), name="pricing_list"),
    path(
        "<vertical:vertical>/pricing/resolve/",
        PricingResolveView.as_view(),
        name="pricing_resolve",
    ),
    path(
        "<vertical:vertical>/pricing/recalculate/",
        PricingRecalculateView.as_view(),
        name="pricing_recalculate",
    ),
    path(
        "<vertical:vertical>/registrations/",
        RegistrationFormCreateView.as_view(),
        name="registration_create",
    ),
]

for kind in CATALOGUE_OPTIONS:
    urlpatterns += [
        path(
            f"<vertical:vertical>/{kind}/",
            CatalogueOptionListView.as_view(),
            {"kind": kind},
            name=f"{kind}_list",
        ),
        path(
            f"<vertical:vertical>/{kind}/<int:option_id>/rename/",
            CatalogueOptionRenameView.as_view(),
            {"kind": kind},
            name=f"{kind}_rename",
        ),
    ]
