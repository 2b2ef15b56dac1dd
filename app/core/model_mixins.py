"""
Reusable model mixins.

Mixins:
    UUIDPrimaryKeyMixin: UUID as primary key

Usage:
    class Transaction(UUIDPrimaryKeyMixin, BaseModel):
        ...

Transaction ids travel to payment providers as order references and come
back in webhooks, so they must be non-guessable and known before the
provider call is made.
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a UUID primary key instead of an auto-increment integer.

    Fields:
        id: UUIDField primary key, generated client-side on instantiation
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
