"""
Ledger-specific exceptions.

Exception Hierarchy:
    LedgerError (base)
    ├── AccountNotFound - Referenced user or fams does not exist
    ├── InsufficientFunds - Debit would push a balance below zero
    ├── InvalidAmount - Zero, or wrong sign for the operation
    ├── InactiveAccount - Deleted or dormant account used for spending
    ├── InvalidTransfer - Transfer to self
    ├── NotAFamsMember - Fams wallet used by a non-member
    ├── TransactionNotFound - Transaction lookup failed
    └── InvalidTransactionState - Operation not allowed in current status

Usage:
    from ledger.exceptions import InsufficientFunds

    raise InsufficientFunds(user.pk, required=500, available=120)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    import uuid
    from typing import Any


class LedgerError(BaseApplicationError):
    """
    Base exception for all ledger operations.

    Example:
        try:
            ledger.transfer(sender, receiver, 500)
        except LedgerError as e:
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "LEDGER_ERROR"


class AccountNotFound(LedgerError, NotFoundError):
    """Raised when the user or fams targeted by a write does not exist."""

    default_error_code: str = "ACCOUNT_NOT_FOUND"


class InsufficientFunds(LedgerError):
    """
    Raised when a debit would make a balance negative.

    Attributes:
        account_id: The user or fams that could not pay
        required: Amount (in cents) that was required
        available: Balance (in cents) at the time of the check
    """

    default_error_code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        account_id: uuid.UUID,
        required: int,
        available: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.account_id = account_id
        self.required = required
        self.available = available

        message = (
            f"Account {account_id} has insufficient funds: "
            f"required {required} cents, available {available} cents"
        )
        full_details = {
            "account_id": str(account_id),
            "required_cents": required,
            "available_cents": available,
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=message,
            error_code=error_code,
            details=full_details,
        )


class InvalidAmount(LedgerError, ValidationError):
    """Raised for a zero amount or an amount with the wrong sign."""

    default_error_code: str = "INVALID_AMOUNT"


class InactiveAccount(LedgerError):
    """
    Raised when a deleted or dormant account is used for spending or
    receiving a transfer. Administrative adjustments still reach dormant
    accounts.
    """

    default_error_code: str = "INACTIVE_ACCOUNT"


class TransactionNotFound(LedgerError, NotFoundError):
    default_error_code: str = "TRANSACTION_NOT_FOUND"


class InvalidTransactionState(LedgerError, ConflictError):
    """
    Raised when an operation is not allowed in the transaction's status.

    Example:
        reversing a PENDING top-up, or reversing the same purchase twice
    """

    default_error_code: str = "INVALID_TRANSACTION_STATE"


class InvalidTransfer(LedgerError, ValidationError):
    """Raised for a transfer whose sender and receiver are the same account."""

    default_error_code: str = "INVALID_TRANSFER"


class NotAFamsMember(LedgerError):
    """Raised when a fams wallet is used by someone outside the fams."""

    default_error_code: str = "NOT_A_FAMS_MEMBER"
    http_status: int = 403
