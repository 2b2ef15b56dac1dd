"""
Pytest fixtures for payment tests.

Provider HTTP traffic never leaves the process: build providers with
``mock_client(handler)``, which wraps ``httpx.MockTransport``.

Usage:
    def test_checkout(lydia_method, mock_client):
        def handler(request):
            return httpx.Response(200, json={...})

        provider = get_payment_provider("lydia", client=mock_client(handler))
"""

import httpx
import pytest
from django.core.cache import cache
from django.test import RequestFactory

from accounts.tests.factories import UserFactory
from payments.tests.factories import PaymentMethodFactory


@pytest.fixture(autouse=True)
def clear_cache():
    """HelloAsso tokens live in the cache; start every test without one."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def rf():
    return RequestFactory()


@pytest.fixture
def user(db):
    return UserFactory(email="sansa@example.com")


# =============================================================================
# Payment Method Fixtures
# =============================================================================


@pytest.fixture
def lydia_method(db):
    return PaymentMethodFactory(slug="lydia")


@pytest.fixture
def sumup_method(db):
    return PaymentMethodFactory(slug="sumup")


@pytest.fixture
def helloasso_method(db):
    return PaymentMethodFactory(slug="helloasso")


# =============================================================================
# HTTP Fixtures
# =============================================================================


@pytest.fixture
def mock_client():
    """Factory building an httpx.Client that routes requests to ``handler``."""
    clients = []

    def build(handler) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield build
    for client in clients:
        client.close()
