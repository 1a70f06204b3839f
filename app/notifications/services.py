"""
Notification service layer for payment events.

This module delivers the side effects of money movements once the
database transaction that caused them has committed:

Services:
    PaymentNotificationService: Confirmation emails, live events over the
        per-user channel group, and earnings cache invalidation

Live events are sent to the ``user_<id>`` group that every connected
NotificationConsumer joins. Clients receive:

    {"type": "tip_received", "payment_id": ..., "amount": ..., ...}
    {"type": "invalidate", "resources": ["payments", "balance"]}
    {"type": "payout_completed" | "payout_failed", "payout_id": ..., ...}

Usage:
    from notifications.services import PaymentNotificationService

    PaymentNotificationService.send_confirmation_email(payment)
    PaymentNotificationService.broadcast_tip(payment)
    PaymentNotificationService.send_invalidation([user.id], ["payments"])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from core.services import BaseService
from payments.ledger.services import BalanceLedger
from payments.ledger.types import format_brl

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable

    from payments.models import Payment, Payout

logger = logging.getLogger(__name__)


# Subject lines per payment kind
EMAIL_SUBJECTS = {
    "subscription": "Your subscription is active",
    "ppv": "Your content is unlocked",
    "tip": "Your tip was delivered",
    "pro_plan": "Welcome to the pro plan",
    "pack": "Your media pack is unlocked",
}


def user_group_name(user_id) -> str:
    """Channel layer group for one user's live events."""
    return f"user_{user_id}"


class PaymentNotificationService(BaseService):
    """
    Side effects of confirmed, refunded and paid out money.

    Every method is safe to call from an on-commit hook: delivery problems
    are logged by the caller (payments.signals.send_safely) and never
    touch the payment.
    """

    # =========================================================================
    # Email
    # =========================================================================

    @classmethod
    def email_context(cls, payment: Payment) -> dict:
        creator = payment.creator
        return {
            "payment": payment,
            "payer_name": payment.payer.get_short_name(),
            "creator_name": creator.display_name if creator else None,
            "amount": format_brl(payment.amount),
            "gateway_fee": format_brl(payment.gateway_fee),
            "total_charged": format_brl(payment.total_charged),
            "description": payment.description,
            "terms": payment.terms,
            "app_url": settings.PUBLIC_API_URL,
        }

    @classmethod
    def send_confirmation_email(cls, payment: Payment) -> bool:
        """
        Email the payer a receipt for a confirmed payment.

        Renders ``notifications/email/payment_<kind>.txt`` and ``.html``.

        Returns:
            False when the payer has no email address, True once sent
        """
        recipient = payment.payer.email
        if not recipient:
            cls.get_logger().info(
                "Confirmation email skipped: payer has no email",
                extra={"payment_id": str(payment.id)},
            )
            return False

        context = cls.email_context(payment)
        template = f"notifications/email/payment_{payment.kind}"
        text_body = render_to_string(f"{template}.txt", context)
        html_body = render_to_string(f"{template}.html", context)

        email = EmailMultiAlternatives(
            subject=EMAIL_SUBJECTS.get(payment.kind, "Payment confirmed"),
            body=text_body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[recipient],
        )
        email.attach_alternative(html_body, "text/html")
        email.send()

        cls.get_logger().info(
            "Confirmation email sent",
            extra={"payment_id": str(payment.id), "kind": payment.kind},
        )
        return True

    # =========================================================================
    # Live events
    # =========================================================================

    @classmethod
    def send_event(cls, user_id, event: dict) -> None:
        """Send one event to a user's live channel group."""
        channel_layer = get_channel_layer()
        if channel_layer is None:
            return
        async_to_sync(channel_layer.group_send)(
            user_group_name(user_id),
            {"type": "notify.event", "event": event},
        )

    @classmethod
    def broadcast_tip(cls, payment: Payment) -> None:
        """Tell the creator about a tip as it lands."""
        terms = payment.terms
        cls.send_event(
            payment.creator.user_id,
            {
                "type": "tip_received",
                "payment_id": str(payment.id),
                "amount": payment.amount,
                "payee_share": payment.payee_share,
                "from": payment.payer.get_short_name(),
                "message": terms.message,
                "content_id": str(terms.content_id) if terms.content_id else None,
            },
        )

    @classmethod
    def send_invalidation(cls, user_ids: Iterable, resources: list[str]) -> None:
        """Ask connected clients to refetch ``resources``."""
        for user_id in {uid for uid in user_ids if uid is not None}:
            cls.send_event(user_id, {"type": "invalidate", "resources": resources})

    @classmethod
    def send_payout_event(cls, payout: Payout, event_type: str) -> None:
        cls.send_event(
            payout.creator.user_id,
            {
                "type": event_type,
                "payout_id": str(payout.id),
                "amount": payout.amount,
                "failure_reason": payout.failure_reason,
            },
        )

    # =========================================================================
    # Cache
    # =========================================================================

    @classmethod
    def invalidate_earnings(cls, creator_id: uuid.UUID | None) -> None:
        if creator_id is not None:
            BalanceLedger.invalidate_cached_balance(creator_id)
