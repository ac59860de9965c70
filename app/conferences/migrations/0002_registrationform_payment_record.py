import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("conferences", "0001_initial"),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="registrationform",
            name="payment_record",
            field=models.OneToOneField(
                blank=True,
                help_text="Payment that settled this registration",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="registration_form",
                to="payments.paymentrecord",
            ),
        ),
    ]
