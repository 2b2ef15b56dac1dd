"""
Fams membership management.

Only membership bookkeeping lives here. Money never moves in this module:
deposits into a fams and fams-paid purchases go through ledger.services.
"""

from __future__ import annotations

import logging

from django.db import IntegrityError, transaction

from accounts.models import Fams, FamsMembership, User
from core.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class FamsService:
    """Static helpers for creating fams and managing their members."""

    @staticmethod
    @transaction.atomic
    def create_fams(name: str, creator: User) -> Fams:
        """
        Create a fams with ``creator`` as its first admin member.

        Raises:
            ConflictError: If the name is already taken
        """
        try:
            with transaction.atomic():
                fams = Fams.objects.create(name=name)
        except IntegrityError:
            raise ConflictError(
                f"A fams named {name!r} already exists",
                error_code="FAMS_NAME_TAKEN",
                details={"name": name},
            )
        FamsMembership.objects.create(fams=fams, user=creator, is_admin=True)
        logger.info(
            "Fams created",
            extra={"fams_id": str(fams.id), "creator_id": str(creator.id)},
        )
        return fams

    @staticmethod
    def add_member(fams: Fams, user: User, is_admin: bool = False) -> FamsMembership:
        membership, created = FamsMembership.objects.get_or_create(
            fams=fams,
            user=user,
            defaults={"is_admin": is_admin},
        )
        if not created and membership.is_admin != is_admin:
            membership.is_admin = is_admin
            membership.save(update_fields=["is_admin", "updated_at"])
        return membership

    @staticmethod
    def remove_member(fams: Fams, user: User) -> None:
        deleted, _ = FamsMembership.objects.filter(fams=fams, user=user).delete()
        if not deleted:
            raise NotFoundError(
                f"{user} is not a member of {fams}",
                error_code="FAMS_MEMBERSHIP_NOT_FOUND",
                details={"fams_id": str(fams.id), "user_id": str(user.id)},
            )

    @staticmethod
    def is_member(fams: Fams, user: User) -> bool:
        return FamsMembership.objects.filter(fams=fams, user=user).exists()
