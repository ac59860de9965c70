import django.db.models.deletion
import django_fsm
from django.db import migrations, models

VERTICAL_CHOICES = [
    ("nursing", "Nursing"),
    ("optics", "Optics"),
    ("renewable", "Renewable Energy"),
    ("polymers", "Polymers"),
]

STATUS_CHOICES = [
    ("PENDING", "Pending"),
    ("COMPLETED", "Completed"),
    ("FAILED", "Failed"),
    ("EXPIRED", "Expired"),
]


def checkout_record_fields():
    """Columns shared by PaymentRecord and DiscountRecord."""
    return [
        (
            "id",
            models.BigAutoField(
                auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
            ),
        ),
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
        (
            "vertical",
            models.CharField(
                choices=VERTICAL_CHOICES,
                db_index=True,
                help_text="Conference this checkout belongs to",
                max_length=20,
            ),
        ),
        (
            "session_id",
            models.CharField(
                help_text="Provider checkout session id (cs_xxx or PAYPAL_xxx)",
                max_length=255,
                unique=True,
            ),
        ),
        (
            "payment_intent_id",
            models.CharField(
                blank=True,
                db_index=True,
                help_text="Provider payment intent id (pi_xxx)",
                max_length=255,
                null=True,
            ),
        ),
        (
            "customer_email",
            models.EmailField(
                blank=True,
                db_index=True,
                help_text="Payer email, back-filled from provider events",
                max_length=254,
                null=True,
            ),
        ),
        (
            "amount_total",
            models.DecimalField(
                blank=True,
                decimal_places=2,
                help_text="Amount in euros (provider cents divided by 100)",
                max_digits=10,
                null=True,
            ),
        ),
        (
            "currency",
            models.CharField(
                blank=True,
                default="eur",
                help_text="ISO 4217 currency code (lowercase)",
                max_length=3,
                null=True,
            ),
        ),
        (
            "status",
            django_fsm.FSMField(
                choices=STATUS_CHOICES,
                db_index=True,
                default="PENDING",
                help_text="Lifecycle status (managed by FSM)",
                max_length=50,
            ),
        ),
        (
            "payment_status",
            models.CharField(
                blank=True,
                help_text="Provider's own status string (paid, unpaid, failed, expired)",
                max_length=50,
                null=True,
            ),
        ),
        (
            "stripe_created_at",
            models.DateTimeField(
                blank=True, help_text="Provider session creation time", null=True
            ),
        ),
        (
            "stripe_expires_at",
            models.DateTimeField(
                blank=True,
                db_index=True,
                help_text="Provider session expiry time (used by the stale sweep)",
                null=True,
            ),
        ),
        (
            "version",
            models.PositiveIntegerField(
                default=1,
                help_text="Version for optimistic locking - incremented on each save",
            ),
        ),
        ("completed_at", models.DateTimeField(blank=True, null=True)),
        ("failed_at", models.DateTimeField(blank=True, null=True)),
        ("expired_at", models.DateTimeField(blank=True, null=True)),
        (
            "metadata",
            models.JSONField(
                blank=True,
                default=dict,
                help_text="Checkout metadata sent to the provider",
            ),
        ),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("conferences", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentRecord",
            fields=[
                *checkout_record_fields(),
                (
                    "provider",
                    models.CharField(
                        choices=[("STRIPE", "Stripe"), ("PAYPAL", "PayPal")],
                        default="STRIPE",
                        help_text="Payment provider owning the session id",
                        max_length=10,
                    ),
                ),
                (
                    "pricing_config",
                    models.ForeignKey(
                        blank=True,
                        help_text="Pricing option that validated this amount (null for legacy rows)",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payment_records",
                        to="conferences.pricingconfig",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Record",
                "verbose_name_plural": "Payment Records",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["vertical", "status", "amount_total"],
                        name="payrec_vertical_status_amt_idx",
                    ),
                    models.Index(
                        fields=["status", "stripe_expires_at"],
                        name="payrec_status_expires_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DiscountRecord",
            fields=[
                *checkout_record_fields(),
                ("name", models.CharField(blank=True, default="", max_length=255)),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                (
                    "institute_or_university",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                ("country", models.CharField(blank=True, default="", max_length=100)),
            ],
            options={
                "verbose_name": "Discount Record",
                "verbose_name_plural": "Discount Records",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "stripe_event_id",
                    models.CharField(
                        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe event type (e.g., 'checkout.session.completed')",
                        max_length=100,
                    ),
                ),
                (
                    "endpoint",
                    models.CharField(
                        choices=[("payments", "Payments"), ("discounts", "Discounts")],
                        default="payments",
                        help_text="Receiver that accepted the delivery",
                        max_length=20,
                    ),
                ),
                (
                    "vertical",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Vertical the event was routed to",
                        max_length=20,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full webhook payload (JSON)")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of processing attempts"
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
                    models.Index(
                        fields=["event_type", "created_at"], name="webhook_type_created_idx"
                    ),
                ],
            },
        ),
    ]
