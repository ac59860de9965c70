"""
Payment admin configuration.

Registers the payment ledgers and stored webhook events with the Django
admin. Status changes go through the service layer; the admin offers
them as actions (refresh from Stripe, expire, replay webhook) rather
than as editable fields.
"""

from django.contrib import admin, messages

from payments.models import DiscountRecord, PaymentRecord, WebhookEvent
from payments.services import PaymentStatusService
from payments.state_machines import PaymentStatus, WebhookEventStatus

__all__ = [
    "DiscountRecordAdmin",
    "PaymentRecordAdmin",
    "WebhookEventAdmin",
]

LEDGER_READONLY_FIELDS = [
    "id",
    "vertical",
    "session_id",
    "payment_intent_id",
    "amount_total",
    "currency",
    "status",
    "payment_status",
    "stripe_created_at",
    "stripe_expires_at",
    "completed_at",
    "failed_at",
    "expired_at",
    "version",
    "metadata",
    "created_at",
    "updated_at",
]


@admin.register(PaymentRecord)
class PaymentRecordAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentRecord.

    Rows are never deleted; the email may be corrected by staff when the
    provider never reported one.
    """

    list_display = [
        "session_id",
        "vertical",
        "provider",
        "customer_email",
        "amount_display",
        "status",
        "payment_status",
        "created_at",
    ]
    list_filter = ["vertical", "provider", "status", "created_at"]
    search_fields = ["session_id", "payment_intent_id", "customer_email"]
    readonly_fields = [*LEDGER_READONLY_FIELDS, "provider", "pricing_config"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["refresh_from_provider", "expire_sessions"]

    fieldsets = (
        (None, {"fields": ("id", "vertical", "provider", "session_id", "payment_intent_id")}),
        ("Payer", {"fields": ("customer_email",)}),
        ("Amount", {"fields": ("amount_total", "currency", "pricing_config")}),
        (
            "Status",
            {
                "fields": (
                    ("status", "payment_status"),
                    ("completed_at", "failed_at", "expired_at"),
                    "version",
                )
            },
        ),
        (
            "Provider",
            {"fields": ("stripe_created_at", "stripe_expires_at", "metadata"), "classes": ("collapse",)},
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    @admin.display(description="Amount")
    def amount_display(self, obj: PaymentRecord) -> str:
        return obj.amount_display

    @admin.action(description="Refresh status from provider")
    def refresh_from_provider(self, request, queryset):
        failed = 0
        for record in queryset:
            result = PaymentStatusService.refresh_payment_status(record.session_id)
            if not result.success:
                failed += 1
        self._report(request, queryset.count() - failed, failed, "refreshed")

    @admin.action(description="Expire selected checkout sessions")
    def expire_sessions(self, request, queryset):
        failed = 0
        for record in queryset.filter(status=PaymentStatus.PENDING):
            result = PaymentStatusService.expire_session(record.session_id)
            if not result.success:
                failed += 1
        self._report(request, queryset.count() - failed, failed, "expired")

    def _report(self, request, done: int, failed: int, verb: str) -> None:
        self.message_user(request, f"{done} record(s) {verb}.")
        if failed:
            self.message_user(request, f"{failed} record(s) failed.", level=messages.WARNING)

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        """Records are created by checkout, never by hand."""
        return False


@admin.register(DiscountRecord)
class DiscountRecordAdmin(admin.ModelAdmin):
    list_display = [
        "session_id",
        "vertical",
        "name",
        "customer_email",
        "amount_display",
        "status",
        "created_at",
    ]
    list_filter = ["vertical", "status"]
    search_fields = ["session_id", "payment_intent_id", "customer_email", "name"]
    readonly_fields = LEDGER_READONLY_FIELDS
    ordering = ["-created_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: DiscountRecord) -> str:
        return obj.amount_display

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Stored Stripe deliveries for both endpoints.

    Failed events can be queued for replay; everything else is read-only.
    """

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "endpoint",
        "vertical",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "endpoint", "vertical", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "stripe_event_id",
        "event_type",
        "endpoint",
        "vertical",
        "payload",
        "processed_at",
        "retry_count",
        "error_message",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["replay_events"]

    fieldsets = (
        (None, {"fields": ("id", "stripe_event_id", "event_type", "endpoint", "vertical", "status")}),
        ("Processing", {"fields": (("processed_at", "retry_count"), "error_message")}),
        ("Payload", {"fields": ("payload",), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    @admin.action(description="Replay selected failed events")
    def replay_events(self, request, queryset):
        from payments.tasks import process_webhook_event

        failed = queryset.filter(status=WebhookEventStatus.FAILED)
        for webhook_event in failed:
            process_webhook_event.delay(webhook_event.pk)
        self.message_user(request, f"Queued {failed.count()} event(s) for replay.")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Deliveries are kept for replay and dedup."""
        return False

    def has_add_permission(self, request) -> bool:
        return False
