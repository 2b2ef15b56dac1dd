"""
Pytest fixtures for mandat tests.
"""

import pytest

from accounts.tests.factories import UserFactory
from shops.tests.factories import ShopFactory


@pytest.fixture
def cashier(db):
    return UserFactory(email="cashier@example.com", is_staff=True)


@pytest.fixture
def customer(db):
    return UserFactory(email="customer@example.com", balance=50_000)


@pytest.fixture
def bar(db):
    return ShopFactory(name="Bar", slug="bar")


@pytest.fixture
def kitchen(db):
    return ShopFactory(name="Kitchen", slug="kitchen")
