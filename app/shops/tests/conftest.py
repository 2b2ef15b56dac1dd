"""
Pytest fixtures for event tests.

Participants are seeded with a balance through the factory; deposit tests
check balance deltas rather than the balance/row invariant.
"""

import pytest

from accounts.tests.factories import UserFactory
from shops.models import EventStatus, EventType
from shops.tests.factories import EventFactory, ShopFactory


@pytest.fixture
def organizer(db):
    return UserFactory(email="organizer@example.com", is_staff=True)


@pytest.fixture
def bar(db):
    return ShopFactory(name="Bar", slug="bar")


@pytest.fixture
def member(db):
    """Factory for participants with a starting balance in cents."""

    def build(balance: int = 10_000, **kwargs):
        return UserFactory(balance=balance, **kwargs)

    return build


@pytest.fixture
def weekend(bar):
    """A DRAFT shared-cost event with a 30.00 EUR deposit."""
    return EventFactory(
        shop=bar,
        name="Integration weekend",
        type=EventType.SHARED_COST,
        acompte=3000,
    )


@pytest.fixture
def open_weekend(bar):
    """An OPEN shared-cost event with a 30.00 EUR deposit."""
    return EventFactory(
        shop=bar,
        name="Ski trip",
        type=EventType.SHARED_COST,
        acompte=3000,
        status=EventStatus.OPEN,
    )
