"""
Django app configuration for shops and events.
"""

from django.apps import AppConfig


class ShopsConfig(AppConfig):
    """Configuration for the shops application (shops, events, expenses)."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "shops"
    verbose_name = "Shops & Events"
