"""
Signal handlers for cross-app notification events.

This module defines handlers that listen for events
from the payments app and trigger the matching notifications.

Related files:
    - services.py: PaymentNotificationService for delivery
    - tasks.py: Async email delivery
    - apps.py: Handler registration

Event Sources:
    - payments.signals.payment_confirmed: receipt email, tip broadcast,
      invalidation events, earnings cache
    - payments.signals.payment_refunded: invalidation events, earnings cache
    - payments.signals.payout_completed / payout_failed: creator events,
      earnings cache

The payments app sends every signal from transaction.on_commit through
send_robust, so a failing handler is logged and never rolls back money.

Usage:
    Handlers are registered in apps.py when the app is ready.
"""

from __future__ import annotations

import logging

from django.dispatch import receiver

from payments.signals import (
    payment_confirmed,
    payment_refunded,
    payout_completed,
    payout_failed,
)
from payments.state_machines import PaymentKind

from notifications.services import PaymentNotificationService
from notifications.tasks import send_payment_confirmation_email

logger = logging.getLogger(__name__)


def _affected_users(payment) -> list:
    creator_user_id = payment.creator.user_id if payment.creator_id else None
    return [payment.payer_id, creator_user_id]


@receiver(payment_confirmed, dispatch_uid="notifications.payment_confirmed")
def on_payment_confirmed(sender, payment, **kwargs):
    """Queue the receipt email, broadcast tips, refresh client views."""
    send_payment_confirmation_email.delay(str(payment.id))

    if payment.kind == PaymentKind.TIP:
        PaymentNotificationService.broadcast_tip(payment)

    PaymentNotificationService.invalidate_earnings(payment.creator_id)
    PaymentNotificationService.send_invalidation(
        _affected_users(payment),
        ["payments", "entitlements", "balance"],
    )
    logger.info(
        "Payment confirmation notifications dispatched",
        extra={"payment_id": str(payment.id), "kind": payment.kind},
    )


@receiver(payment_refunded, dispatch_uid="notifications.payment_refunded")
def on_payment_refunded(sender, payment, **kwargs):
    PaymentNotificationService.invalidate_earnings(payment.creator_id)
    PaymentNotificationService.send_invalidation(
        _affected_users(payment),
        ["payments", "entitlements", "balance"],
    )


@receiver(payout_completed, dispatch_uid="notifications.payout_completed")
def on_payout_completed(sender, payout, **kwargs):
    PaymentNotificationService.invalidate_earnings(payout.creator_id)
    PaymentNotificationService.send_payout_event(payout, "payout_completed")


@receiver(payout_failed, dispatch_uid="notifications.payout_failed")
def on_payout_failed(sender, payout, **kwargs):
    """Funds are back in the balance; tell the creator."""
    PaymentNotificationService.invalidate_earnings(payout.creator_id)
    PaymentNotificationService.send_payout_event(payout, "payout_failed")
