"""
Payment lifecycle signals.

Sent by ReconciliationService after the transaction that changed the
payment has committed, so receivers only ever see persisted state.

Signals:
    payment_confirmed(sender, payment): payment moved PENDING -> CONFIRMED
    payment_refunded(sender, payment): payment moved CONFIRMED -> REFUNDED
    payout_completed(sender, payout): PIX transfer reported done
    payout_failed(sender, payout): PIX transfer failed, funds returned

Related files:
    - services/reconciliation_service.py: sends payment signals
    - services/payout_service.py: sends payout signals
    - notifications/handlers.py: email, live events, cache invalidation

Usage:
    from django.dispatch import receiver
    from payments.signals import payment_confirmed

    @receiver(payment_confirmed)
    def on_payment_confirmed(sender, payment, **kwargs):
        ...
"""

from __future__ import annotations

import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)


payment_confirmed = Signal()
payment_refunded = Signal()
payout_completed = Signal()
payout_failed = Signal()


def send_safely(signal: Signal, sender, **kwargs) -> None:
    """
    Send a signal, logging receiver errors instead of raising them.

    Notification side effects must never undo a committed payment state
    change, so receiver exceptions are collected with send_robust().
    """
    for receiver, response in signal.send_robust(sender=sender, **kwargs):
        if isinstance(response, Exception):
            logger.error(
                "Signal receiver failed",
                extra={
                    "receiver": getattr(receiver, "__qualname__", repr(receiver)),
                    "error": str(response),
                },
                exc_info=(type(response), response, response.__traceback__),
            )
