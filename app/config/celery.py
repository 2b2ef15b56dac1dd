"""
Celery application for background and scheduled ledger work.

Redis is both the broker and the result backend. Tasks are auto-discovered
from each installed app's tasks.py; the periodic schedule lives in
settings.CELERY_BEAT_SCHEDULE and is synced by django-celery-beat.

Usage:
    from celery import shared_task

    @shared_task
    def expire_stale_topups():
        ...

See https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
