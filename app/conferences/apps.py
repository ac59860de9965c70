"""
Conferences app configuration.

Holds the per-vertical catalogue (presentation types, accommodation,
session and interest options, pricing configs) and the registration
forms that payments are linked to.
"""

from django.apps import AppConfig


class ConferencesConfig(AppConfig):
    """Configuration for the conferences application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "conferences"
    verbose_name = "Conferences"
