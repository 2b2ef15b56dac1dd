"""
Provider fee schedules.

A provider takes ``fixed`` cents plus ``percentage`` % of what the payer is
charged. To credit the wallet with exactly ``amount`` cents the payer must
therefore be charged:

    total = ceil((amount + fixed) / (1 - percentage / 100))

Usage:
    fees = FeeSchedule.from_mapping({"fixed": 10, "percentage": "1.5"})
    fees.total_cents(2000)      # 2041
    fees.preview(2000)          # Decimal("20.41")
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from ledger.types import Money
from payments.exceptions import ProviderConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True)
class FeeSchedule:
    fixed: int = 0
    percentage: Decimal = Decimal("0")

    def __post_init__(self):
        if self.fixed < 0:
            raise ProviderConfigurationError(
                "Fixed fee cannot be negative",
                details={"fixed": self.fixed},
            )
        if not Decimal("0") <= self.percentage < Decimal("100"):
            raise ProviderConfigurationError(
                "Fee percentage must be in [0, 100)",
                details={"percentage": str(self.percentage)},
            )

    @classmethod
    def from_mapping(cls, data: Mapping | None) -> FeeSchedule:
        """Build from a PaymentMethod.fees JSON value; missing keys mean no fee."""
        data = data or {}
        try:
            return cls(
                fixed=int(data.get("fixed", 0)),
                percentage=Decimal(str(data.get("percentage", 0))),
            )
        except (TypeError, ValueError, InvalidOperation) as e:
            raise ProviderConfigurationError(
                "Invalid fee configuration",
                details={"fees": dict(data), "error": str(e)},
            ) from e

    def total_cents(self, amount_cents: int) -> int:
        """Cents to charge the payer so the wallet receives ``amount_cents``."""
        numerator = (amount_cents + self.fixed) * 100
        denominator = Decimal("100") - self.percentage
        return math.ceil(Decimal(numerator) / denominator)

    def fee_cents(self, amount_cents: int) -> int:
        return self.total_cents(amount_cents) - amount_cents

    def preview(self, amount_cents: int) -> Decimal:
        """Total the payer sees, in euros with two decimals."""
        return Money(self.total_cents(amount_cents)).as_decimal()

    def to_dict(self) -> dict:
        return {"fixed": self.fixed, "percentage": str(self.percentage)}
