"""
URL configuration for the ledger API.

All routes are prefixed with /api/v1/ledger/ when included in the main URLconf.
"""

from django.urls import path

from ledger.views import BalanceView, FamsDepositView, TransactionListView, TransferView

app_name = "ledger"

urlpatterns = [
    path("balance/", BalanceView.as_view(), name="balance"),
    path("transactions/", TransactionListView.as_view(), name="transaction-list"),
    path("transfers/", TransferView.as_view(), name="transfer"),
    path("fams/<uuid:fams_id>/deposit/", FamsDepositView.as_view(), name="fams-deposit"),
]
