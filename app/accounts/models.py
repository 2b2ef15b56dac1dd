"""
Balance-holding accounts.

This module defines the two kinds of wallet the ledger can debit or credit:
- User: an individual member, authenticated by email, with a personal balance
- Fams: a shared group wallet, with members tracked by FamsMembership

Both carry a ``balance`` in euro cents. The field is a cache of the sum of
the account's COMPLETED ledger transactions and is only ever written by
ledger.balances through atomic ``F()`` updates; nothing else may assign it.

Related files:
    - managers.py: UserManager for email-based creation
    - ledger/balances.py: the only writer of ``balance``
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from accounts.managers import UserManager
from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class User(UUIDPrimaryKeyMixin, AbstractBaseUser, PermissionsMixin):
    """
    Community member with a personal wallet.

    Fields:
        email: Primary identifier, unique, used for login
        username: Display handle
        first_name / last_name: Shown on receipts and transfer history
        phone: Mobile number, passed to Lydia when set
        balance: Personal wallet balance in cents (ledger-maintained)
        is_asleep: Dormant account; cannot spend or receive transfers
        is_active: Deactivated accounts are treated as deleted
        is_staff: Admin dashboard access

    Usage:
        user = User.objects.create_user(email="tyrion@example.com")
        user.balance  # 0
    """

    email = models.EmailField(
        unique=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    username = models.CharField(max_length=150, blank=True)
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    phone = models.CharField(
        max_length=32,
        blank=True,
        help_text="Mobile number in international format",
    )

    balance = models.BigIntegerField(
        default=0,
        editable=False,
        help_text="Personal wallet balance in cents",
    )
    is_asleep = models.BooleanField(
        default=False,
        help_text="Dormant account: blocked from spending and transfers",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email

    def get_short_name(self):
        return self.first_name or self.username or self.email


class Fams(UUIDPrimaryKeyMixin, BaseModel):
    """
    Shared group wallet.

    Members can pay from it (FAMILY purchases) and anyone can deposit into
    it from a personal wallet. Balance rules are the same as for users.
    """

    name = models.CharField(max_length=100, unique=True)
    balance = models.BigIntegerField(
        default=0,
        editable=False,
        help_text="Group wallet balance in cents",
    )
    members = models.ManyToManyField(
        "accounts.User",
        through="accounts.FamsMembership",
        related_name="fams",
    )

    class Meta:
        verbose_name = "fams"
        verbose_name_plural = "fams"
        ordering = ["name"]

    def __str__(self):
        return self.name


class FamsMembership(BaseModel):
    """Link between a user and a fams; ``is_admin`` marks group managers."""

    fams = models.ForeignKey(
        Fams,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    user = models.ForeignKey(
        "accounts.User",
        on_delete=models.CASCADE,
        related_name="fams_memberships",
    )
    is_admin = models.BooleanField(default=False)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["fams", "user"],
                name="unique_fams_membership",
            )
        ]

    def __str__(self):
        return f"{self.user} in {self.fams}"
