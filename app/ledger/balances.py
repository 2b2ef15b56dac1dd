"""
Atomic balance primitives.

This is the only module that writes ``User.balance`` or ``Fams.balance``.
Balances are never read into Python, modified and saved back; every change
is a single ``UPDATE ... SET balance = balance + delta`` so concurrent
writers cannot lose each other's updates.

Guarded debits add ``WHERE balance >= -delta`` to the same statement.
Two concurrent debits against the same wallet therefore serialize on the
row and the second one sees the first one's result: at most one of them
can succeed when together they would overdraw the wallet.

Callers must already be inside ``transaction.atomic()`` together with the
ledger rows that justify the change.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Iterable

from django.db import transaction
from django.db.models import F

from accounts.models import Fams
from ledger.exceptions import AccountNotFound, InsufficientFunds

logger = logging.getLogger(__name__)


def _manager(account):
    return account._meta.model._default_manager


def _lock_order(account) -> tuple[int, str]:
    # Fams before users, then by primary key, for every multi-account write
    return (0 if isinstance(account, Fams) else 1, str(account.pk))


def current_balance(account) -> int:
    """Read the committed balance, bypassing any stale in-memory value."""
    balance = (
        _manager(account).filter(pk=account.pk).values_list("balance", flat=True).first()
    )
    if balance is None:
        raise AccountNotFound(
            f"{account._meta.verbose_name} {account.pk} not found",
            details={"account_id": str(account.pk)},
        )
    return balance


def lock(account):
    """
    Lock the account row until the surrounding transaction ends.

    Returns a fresh instance. Used when a decision depends on the current
    balance (set-balance).
    """
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("balances.lock() requires an atomic block")
    try:
        return _manager(account).select_for_update().get(pk=account.pk)
    except account._meta.model.DoesNotExist:
        raise AccountNotFound(
            f"{account._meta.verbose_name} {account.pk} not found",
            details={"account_id": str(account.pk)},
        )


def apply_delta(account, delta: int, allow_negative: bool = False) -> None:
    """
    Add ``delta`` to the account balance in one statement.

    Args:
        account: User or Fams instance
        delta: Signed cents
        allow_negative: Skip the non-negative guard (adjustments only)

    Raises:
        AccountNotFound: If the row does not exist
        InsufficientFunds: If a guarded debit would overdraw the account
    """
    queryset = _manager(account).filter(pk=account.pk)
    if delta < 0 and not allow_negative:
        queryset = queryset.filter(balance__gte=-delta)

    if queryset.update(balance=F("balance") + delta) == 0:
        available = current_balance(account)
        raise InsufficientFunds(account.pk, required=-delta, available=available)

    account.balance = current_balance(account)


def apply_many(changes: Iterable[tuple[object, int, bool]]) -> None:
    """
    Apply several balance changes.

    Changes to the same account are netted first and checked once, so a
    three-line purchase is validated against its total. An account's net
    change may go negative only when every change to it allowed that.
    Accounts are updated in a fixed order to avoid lock cycles.

    Args:
        changes: (account, delta, allow_negative) tuples
    """
    netted: OrderedDict[tuple[type, object], list] = OrderedDict()
    for account, delta, allow_negative in changes:
        key = (account._meta.model, account.pk)
        if key not in netted:
            netted[key] = [account, 0, True]
        entry = netted[key]
        entry[1] += delta
        entry[2] = entry[2] and allow_negative

    for account, delta, allow_negative in sorted(
        netted.values(), key=lambda entry: _lock_order(entry[0])
    ):
        if delta == 0:
            continue
        apply_delta(account, delta, allow_negative=allow_negative)
        logger.debug(
            "Balance updated",
            extra={
                "account_id": str(account.pk),
                "delta_cents": delta,
                "balance_cents": account.balance,
            },
        )
