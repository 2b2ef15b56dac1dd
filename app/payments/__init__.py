"""
Payments app: wallet top-ups through external payment providers.

This app handles:
- Payment method configuration (enabled providers, fees, credentials)
- Top-up initiation (PENDING ledger row + provider checkout)
- Provider webhooks and settlement of PENDING top-ups
- Expiry of top-ups the provider never settled

Related apps:
    - ledger: Transaction rows and atomic balance updates
    - accounts: User wallets

Usage:
    from payments.services import TopUpService

    result = TopUpService.initiate_top_up(user, "lydia", 2000)
    # redirect the user to result.redirect_url
"""
