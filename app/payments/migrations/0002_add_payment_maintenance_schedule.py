"""
Add celery-beat schedules for payment maintenance.

- Expire stale PENDING payment records every 15 minutes
- Replay failed webhook events every 10 minutes
- Reset webhook events stuck in PROCESSING every 30 minutes
"""

from django.db import migrations

SCHEDULED_TASKS = [
    {
        "name": "Expire Stale Payments",
        "task": "payments.tasks.expire_stale_payments",
        "every": 15,
        "description": (
            "Flips PENDING payment records whose Stripe session has expired "
            "to EXPIRED."
        ),
    },
    {
        "name": "Retry Failed Webhooks",
        "task": "payments.tasks.retry_failed_webhooks",
        "every": 10,
        "description": "Re-queues failed webhook events that still have retries left.",
    },
    {
        "name": "Cleanup Stuck Webhooks",
        "task": "payments.tasks.cleanup_stuck_webhooks",
        "every": 30,
        "description": "Marks webhook events left in PROCESSING by a crashed worker as failed.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for payment maintenance."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULED_TASKS:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name__in=[entry["name"] for entry in SCHEDULED_TASKS]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
