"""
Payment domain models.

This module contains all payment-related models:
- Payment: One PIX charge and its fee split
- Subscription: Time-boxed access to a creator
- Payout: PIX transfer of creator earnings
- WebhookEvent: Gateway notification tracking for idempotent processing
- Balance / BalanceEntry: Creator balances (payments.ledger)
"""

from payments.ledger.models import Balance, BalanceEntry
from payments.models.payment import Payment
from payments.models.payout import Payout
from payments.models.subscription import Subscription
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Balance",
    "BalanceEntry",
    "Payment",
    "Payout",
    "Subscription",
    "WebhookEvent",
]
