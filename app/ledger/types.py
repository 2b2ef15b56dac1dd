"""
Data types for ledger operations.

Types:
    Money: A cent amount with euro formatting helpers
    TransactionDraft: Everything needed to write one ledger row
    PurchaseLine: One cart line of a purchase

Usage:
    from ledger.types import Money, TransactionDraft

    Money(1050).as_decimal()  # Decimal("10.50")

    draft = TransactionDraft(
        amount=-450,
        type=TransactionType.PURCHASE,
        issuer=cashier,
        target_user=customer,
        shop=bar,
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from ledger.models import TransactionStatus, TransactionType, WalletSource

if TYPE_CHECKING:
    from accounts.models import Fams, User
    from shops.models import Event, Shop


@dataclass(frozen=True)
class Money:
    """
    A monetary amount in euro cents.

    Providers disagree on units: HelloAsso wants cents, Lydia and SumUp
    want euros with two decimals. Convert here, never with floats.

    Example:
        Money(2041).as_decimal()   # Decimal("20.41")
        str(Money(-250))           # "-2.50 EUR"
    """

    cents: int
    currency: str = "EUR"

    def as_decimal(self) -> Decimal:
        return (Decimal(self.cents) / 100).quantize(Decimal("0.01"))

    def __str__(self) -> str:
        return f"{self.as_decimal()} {self.currency}"

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.cents + other.cents, self.currency)


@dataclass
class TransactionDraft:
    """
    Parameters for writing one ledger row.

    Required Attributes:
        amount: Signed cents (negative = debit of the target account)
        type: TransactionType
        issuer: Actor who initiated the movement

    Target (one of):
        target_user: Account for PERSONAL rows
        fams: Account for FAMILY rows (wallet_source becomes FAMILY)

    Status:
        PENDING is only valid for TOPUP rows awaiting provider settlement;
        everything else is written COMPLETED and applied immediately.
    """

    amount: int
    type: str
    issuer: User
    target_user: User | None = None
    fams: Fams | None = None
    status: str = TransactionStatus.COMPLETED
    receiver_user: User | None = None
    shop: Shop | None = None
    product_id: uuid.UUID | None = None
    quantity: Decimal | None = None
    event: Event | None = None
    group_id: uuid.UUID | None = None
    reverses_id: uuid.UUID | None = None
    description: str = ""
    payment_provider: str = ""

    def __post_init__(self) -> None:
        """Validate params after initialization."""
        if self.amount == 0:
            raise ValueError("amount must not be zero")
        if self.target_user is None and self.fams is None:
            raise ValueError("target_user or fams is required")
        if self.status not in (TransactionStatus.COMPLETED, TransactionStatus.PENDING):
            raise ValueError("drafts are written PENDING or COMPLETED")
        if self.status == TransactionStatus.PENDING and self.type != TransactionType.TOPUP:
            raise ValueError("only top-ups can be written PENDING")

    @property
    def wallet_source(self) -> str:
        return WalletSource.FAMILY if self.fams is not None else WalletSource.PERSONAL

    @property
    def account(self):
        return self.fams if self.fams is not None else self.target_user

    @property
    def allows_negative(self) -> bool:
        """Only administrative adjustments may drive a balance below zero."""
        return self.type == TransactionType.ADJUSTMENT or self.amount > 0


@dataclass
class PurchaseLine:
    """
    One cart line. ``unit_price`` is positive; the debit is
    ``unit_price * quantity`` rounded to the cent.
    """

    unit_price: int
    quantity: Decimal = Decimal("1")
    product_id: uuid.UUID | None = None
    event: Event | None = None
    label: str = ""

    def __post_init__(self) -> None:
        self.quantity = Decimal(str(self.quantity))
        if self.unit_price <= 0:
            raise ValueError("unit_price must be positive")
        if self.quantity <= 0:
            raise ValueError("quantity must be positive")

    @property
    def total(self) -> int:
        return int((Decimal(self.unit_price) * self.quantity).quantize(Decimal("1")))
