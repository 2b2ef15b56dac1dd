"""
Pytest fixtures for ledger tests.

Balances are seeded through the factories, so ``compute_balance()`` of a
seeded account does not match ``balance``. Tests of the balance/row
invariant start from zero or record their starting balance through the
ledger with ``funded_user``.
"""

import pytest

from accounts.tests.factories import FamsFactory, UserFactory
from ledger.services import ledger
from shops.tests.factories import ShopFactory


@pytest.fixture
def cashier(db):
    return UserFactory(email="cashier@example.com", is_staff=True)


@pytest.fixture
def tyrion(db):
    return UserFactory(email="tyrion@example.com", balance=100_000)


@pytest.fixture
def sansa(db):
    return UserFactory(email="sansa@example.com", balance=10_000)


@pytest.fixture
def bar(db):
    return ShopFactory(name="Bar", slug="bar")


@pytest.fixture
def fams(db):
    return FamsFactory(name="Lannister")


@pytest.fixture
def funded_user(cashier):
    """Factory for users whose balance is backed by a COMPLETED top-up row."""

    def build(amount_cents: int = 10_000, **kwargs):
        user = UserFactory(**kwargs)
        ledger.top_up(cashier, user, amount_cents)
        user.refresh_from_db()
        return user

    return build
