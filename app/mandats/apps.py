"""
Django app configuration for mandats.
"""

from django.apps import AppConfig


class MandatsConfig(AppConfig):
    """Configuration for the mandats application (period stock accounting)."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "mandats"
    verbose_name = "Mandats"
