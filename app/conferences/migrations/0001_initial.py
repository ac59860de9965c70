from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models

VERTICAL_CHOICES = [
    ("nursing", "Nursing"),
    ("optics", "Optics"),
    ("renewable", "Renewable Energy"),
    ("polymers", "Polymers"),
]


def vertical_field(help_text):
    return models.CharField(
        choices=VERTICAL_CHOICES,
        db_index=True,
        help_text=help_text,
        max_length=20,
    )


def timestamp_fields():
    return [
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
    ]


def id_field():
    return (
        "id",
        models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID"),
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PresentationType",
            fields=[
                id_field(),
                *timestamp_fields(),
                ("vertical", vertical_field("Conference this option belongs to")),
                (
                    "type",
                    models.CharField(
                        help_text="Presentation type label (e.g., 'Oral Presentation')",
                        max_length=100,
                    ),
                ),
                (
                    "price",
                    models.DecimalField(decimal_places=2, help_text="Price in euros", max_digits=10),
                ),
            ],
            options={
                "verbose_name": "Presentation Type",
                "verbose_name_plural": "Presentation Types",
                "ordering": ["vertical", "price"],
            },
        ),
        migrations.CreateModel(
            name="AccommodationOption",
            fields=[
                id_field(),
                *timestamp_fields(),
                ("vertical", vertical_field("Conference this option belongs to")),
                (
                    "nights",
                    models.PositiveSmallIntegerField(help_text="Number of nights included"),
                ),
                (
                    "guests",
                    models.PositiveSmallIntegerField(help_text="Number of guests included"),
                ),
                (
                    "price",
                    models.DecimalField(decimal_places=2, help_text="Price in euros", max_digits=10),
                ),
                (
                    "label",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Optional label overriding the generated nights/guests text",
                        max_length=100,
                    ),
                ),
            ],
            options={
                "verbose_name": "Accommodation Option",
                "verbose_name_plural": "Accommodation Options",
                "ordering": ["vertical", "nights", "guests"],
            },
        ),
        migrations.CreateModel(
            name="SessionOption",
            fields=[
                id_field(),
                *timestamp_fields(),
                ("vertical", vertical_field("Conference this option belongs to")),
                ("session_name", models.CharField(help_text="Session title", max_length=255)),
            ],
            options={
                "verbose_name": "Session Option",
                "verbose_name_plural": "Session Options",
                "ordering": ["vertical", "session_name"],
            },
        ),
        migrations.CreateModel(
            name="InterestOption",
            fields=[
                id_field(),
                *timestamp_fields(),
                ("vertical", vertical_field("Conference this option belongs to")),
                ("option_name", models.CharField(help_text="Option label", max_length=255)),
            ],
            options={
                "verbose_name": "Interest Option",
                "verbose_name_plural": "Interest Options",
                "ordering": ["vertical", "option_name"],
            },
        ),
        migrations.CreateModel(
            name="PricingConfig",
            fields=[
                id_field(),
                *timestamp_fields(),
                ("vertical", vertical_field("Conference this pricing belongs to")),
                (
                    "processing_fee_percent",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        help_text="Card processing fee added on top of the subtotal",
                        max_digits=5,
                    ),
                ),
                (
                    "total_price",
                    models.DecimalField(
                        decimal_places=2,
                        editable=False,
                        help_text="Computed total in euros",
                        max_digits=10,
                    ),
                ),
                (
                    "presentation_type",
                    models.ForeignKey(
                        help_text="Presentation type being priced",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="pricing_configs",
                        to="conferences.presentationtype",
                    ),
                ),
                (
                    "accommodation_option",
                    models.ForeignKey(
                        blank=True,
                        help_text="Optional accommodation package",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="pricing_configs",
                        to="conferences.accommodationoption",
                    ),
                ),
            ],
            options={
                "verbose_name": "Pricing Config",
                "verbose_name_plural": "Pricing Configs",
                "ordering": ["vertical", "total_price"],
            },
        ),
        migrations.CreateModel(
            name="RegistrationForm",
            fields=[
                id_field(),
                *timestamp_fields(),
                ("vertical", vertical_field("Conference this registration belongs to")),
                ("name", models.CharField(help_text="Applicant full name", max_length=255)),
                (
                    "phone",
                    models.CharField(blank=True, default="", help_text="Phone number", max_length=50),
                ),
                (
                    "email",
                    models.EmailField(
                        db_index=True,
                        help_text="Applicant email (payment correlation key)",
                        max_length=254,
                    ),
                ),
                (
                    "institute_or_university",
                    models.CharField(blank=True, default="", help_text="Affiliation", max_length=255),
                ),
                (
                    "country",
                    models.CharField(blank=True, default="", help_text="Country", max_length=100),
                ),
                (
                    "amount_paid",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Snapshot of the total price in euros at registration time",
                        max_digits=10,
                    ),
                ),
                (
                    "pricing_config",
                    models.ForeignKey(
                        blank=True,
                        help_text="Pricing option chosen at registration time",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="registration_forms",
                        to="conferences.pricingconfig",
                    ),
                ),
            ],
            options={
                "verbose_name": "Registration Form",
                "verbose_name_plural": "Registration Forms",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["vertical", "email"], name="regform_vertical_email_idx")
                ],
            },
        ),
    ]
