"""
Celery configuration for the Django application.

Celery runs the payment maintenance work outside the request cycle:
- Replaying stored webhook events that failed
- Resetting webhook events stuck in PROCESSING
- The stale PENDING payment sweep (every 15 minutes via celery-beat)

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps; the periodic schedule
is stored by django-celery-beat (created by a payments data migration).

Usage:
    # Worker and beat
    celery -A config worker -l info
    celery -A config beat -l info

    # Queue a task by hand
    from payments.tasks import expire_stale_payments
    expire_stale_payments.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for a tasks.py module in each installed app
app.autodiscover_tasks()
