"""
Tests for the ledger API views.
"""

import uuid

import pytest
from rest_framework.test import APIClient

from accounts.models import Fams, User
from accounts.tests.factories import FamsFactory, UserFactory
from ledger.models import Transaction
from ledger.services import ledger


@pytest.fixture
def api_client(tyrion):
    client = APIClient()
    client.force_authenticate(user=tyrion)
    return client


class TestBalanceView:
    """Tests for GET /api/v1/ledger/balance/."""

    def test_returns_wallet_and_fams_balances(self, api_client, tyrion):
        FamsFactory(name="Lannister", balance=4200, members=[tyrion])
        FamsFactory(name="Stark", balance=100)

        response = api_client.get("/api/v1/ledger/balance/")

        assert response.status_code == 200
        assert response.data["balance"] == 100_000
        assert response.data["balance_display"] == "1000.00 EUR"
        assert [(f["name"], f["balance"]) for f in response.data["fams"]] == [
            ("Lannister", 4200)
        ]

    def test_requires_authentication(self, db):
        assert APIClient().get("/api/v1/ledger/balance/").status_code == 401


class TestTransactionListView:
    """Tests for GET /api/v1/ledger/transactions/."""

    def test_lists_own_rows_newest_first(self, api_client, tyrion, sansa, cashier):
        ledger.top_up(cashier, tyrion, 1000)
        ledger.transfer(tyrion, sansa, 300)

        response = api_client.get("/api/v1/ledger/transactions/")

        assert response.status_code == 200
        assert response.data["count"] == 2
        amounts = [row["amount"] for row in response.data["results"]]
        assert amounts == [-300, 1000]

    def test_page_size_is_capped(self, api_client, tyrion, cashier):
        for _ in range(3):
            ledger.top_up(cashier, tyrion, 100)

        response = api_client.get("/api/v1/ledger/transactions/?page_size=2")

        assert len(response.data["results"]) == 2
        assert response.data["next"] is not None


class TestTransferView:
    """Tests for POST /api/v1/ledger/transfers/."""

    def test_transfer(self, api_client, tyrion, sansa):
        response = api_client.post(
            "/api/v1/ledger/transfers/",
            {"receiver_id": str(sansa.pk), "amount_cents": 5000},
            format="json",
        )

        assert response.status_code == 201
        assert len(response.data) == 2
        assert User.objects.get(pk=tyrion.pk).balance == 95_000
        assert User.objects.get(pk=sansa.pk).balance == 15_000

    def test_insufficient_funds(self, api_client, sansa):
        response = api_client.post(
            "/api/v1/ledger/transfers/",
            {"receiver_id": str(sansa.pk), "amount_cents": 100_001},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "INSUFFICIENT_FUNDS"
        assert not Transaction.objects.exists()

    def test_unknown_receiver(self, api_client):
        response = api_client.post(
            "/api/v1/ledger/transfers/",
            {"receiver_id": str(uuid.uuid4()), "amount_cents": 100},
            format="json",
        )

        assert response.status_code == 404

    def test_non_positive_amount(self, api_client, sansa):
        response = api_client.post(
            "/api/v1/ledger/transfers/",
            {"receiver_id": str(sansa.pk), "amount_cents": 0},
            format="json",
        )

        assert response.status_code == 400


class TestFamsDepositView:
    """Tests for POST /api/v1/ledger/fams/<id>/deposit/."""

    def test_member_deposit(self, api_client, tyrion):
        fams = FamsFactory(members=[tyrion])

        response = api_client.post(
            f"/api/v1/ledger/fams/{fams.pk}/deposit/",
            {"amount_cents": 2000},
            format="json",
        )

        assert response.status_code == 201
        assert Fams.objects.get(pk=fams.pk).balance == 2000
        assert User.objects.get(pk=tyrion.pk).balance == 98_000

    def test_non_member_forbidden(self, api_client):
        fams = FamsFactory(members=[UserFactory()])

        response = api_client.post(
            f"/api/v1/ledger/fams/{fams.pk}/deposit/",
            {"amount_cents": 2000},
            format="json",
        )

        assert response.status_code == 403
        assert Fams.objects.get(pk=fams.pk).balance == 0

    def test_unknown_fams(self, api_client):
        response = api_client.post(
            f"/api/v1/ledger/fams/{uuid.uuid4()}/deposit/",
            {"amount_cents": 2000},
            format="json",
        )

        assert response.status_code == 404
