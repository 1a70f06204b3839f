"""
Payments app configuration.

This app provides the payment and entitlement ledger:
- PIX charges through the gateway adapter
- Reconciliation of gateway notifications and polls
- Entitlement grants and creator balances
- Creator payouts
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
