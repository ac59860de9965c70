"""
Conference admin configuration.

Catalogue options are edited per vertical; registration forms are
read-mostly and show the linked payment session.
"""

from django.contrib import admin

from conferences.models import (
    AccommodationOption,
    InterestOption,
    PresentationType,
    PricingConfig,
    RegistrationForm,
    SessionOption,
)


class NamedOptionAdmin(admin.ModelAdmin):
    """Shared listing for options implementing the Named capability."""

    list_display = ["id", "vertical", "option_label", "created_at"]
    list_filter = ["vertical"]

    @admin.display(description="Label")
    def option_label(self, obj):
        return obj.display_name


@admin.register(PresentationType)
class PresentationTypeAdmin(NamedOptionAdmin):
    list_display = ["id", "vertical", "option_label", "price", "created_at"]


@admin.register(AccommodationOption)
class AccommodationOptionAdmin(NamedOptionAdmin):
    list_display = ["id", "vertical", "option_label", "nights", "guests", "price"]


admin.site.register(SessionOption, NamedOptionAdmin)
admin.site.register(InterestOption, NamedOptionAdmin)


@admin.register(PricingConfig)
class PricingConfigAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "vertical",
        "presentation_type",
        "accommodation_option",
        "processing_fee_percent",
        "total_price",
    ]
    list_filter = ["vertical"]
    readonly_fields = ["total_price", "created_at", "updated_at"]


@admin.register(RegistrationForm)
class RegistrationFormAdmin(admin.ModelAdmin):
    """
    Admin configuration for RegistrationForm.

    The payment link is read-only here; use the link endpoint so the
    change goes through the registration linker and is logged.
    """

    list_display = [
        "id",
        "vertical",
        "name",
        "email",
        "amount_paid",
        "payment_record",
        "created_at",
    ]
    list_filter = ["vertical"]
    search_fields = ["name", "email", "payment_record__session_id"]
    readonly_fields = ["payment_record", "created_at", "updated_at"]
    ordering = ["-created_at"]
