"""
Tests for PaymentNotificationService and the confirmation email task.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from django.core import mail

from notifications.services import PaymentNotificationService, user_group_name
from notifications.tasks import send_payment_confirmation_email
from payments.ledger.services import BalanceLedger
from payments.state_machines import PaymentStatus, PayoutStatus
from payments.tests.factories import (
    PaymentFactory,
    PayoutFactory,
    PPVPaymentFactory,
    SubscriptionPaymentFactory,
)


@pytest.fixture
def channel_layer():
    """Channel layer whose group_send calls are recorded."""
    layer = MagicMock()
    layer.group_send = AsyncMock()
    with patch("notifications.services.get_channel_layer", return_value=layer):
        yield layer


def sent_events(layer) -> list[tuple[str, dict]]:
    return [(c.args[0], c.args[1]["event"]) for c in layer.group_send.call_args_list]


# =============================================================================
# Email Tests
# =============================================================================


class TestConfirmationEmail:
    """Tests for send_confirmation_email()."""

    def test_sends_receipt_with_fee_breakdown(self, user, creator):
        payment = SubscriptionPaymentFactory(payer=user, creator=creator, status=PaymentStatus.CONFIRMED)

        assert PaymentNotificationService.send_confirmation_email(payment) is True

        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == [user.email]
        assert message.subject == "Your subscription is active"
        assert "R$ 19,90" in message.body
        assert "R$ 1,99" in message.body
        assert "R$ 21,89" in message.body
        assert message.alternatives[0][1] == "text/html"

    def test_ppv_subject(self, user, ppv_content):
        payment = PPVPaymentFactory(
            payer=user, creator=ppv_content.creator, content=ppv_content, status=PaymentStatus.CONFIRMED
        )

        PaymentNotificationService.send_confirmation_email(payment)

        assert mail.outbox[0].subject == "Your content is unlocked"

    def test_skips_payer_without_email(self, user, creator):
        payment = PaymentFactory(payer=user, creator=creator, status=PaymentStatus.CONFIRMED)
        payment.payer.email = ""

        assert PaymentNotificationService.send_confirmation_email(payment) is False
        assert mail.outbox == []


class TestConfirmationEmailTask:
    """Tests for the send_payment_confirmation_email task."""

    def test_sends_for_confirmed_payment(self, user, creator):
        payment = PaymentFactory(payer=user, creator=creator, status=PaymentStatus.CONFIRMED)

        assert send_payment_confirmation_email(str(payment.id)) is True
        assert mail.outbox[0].subject == "Your tip was delivered"

    def test_skips_refunded_payment(self, user, creator):
        payment = PaymentFactory(payer=user, creator=creator, status=PaymentStatus.REFUNDED)

        assert send_payment_confirmation_email(str(payment.id)) is False
        assert mail.outbox == []

    def test_skips_unknown_payment(self, db):
        assert send_payment_confirmation_email("00000000-0000-0000-0000-000000000000") is False


# =============================================================================
# Live Event Tests
# =============================================================================


class TestLiveEvents:
    """Tests for the channel layer events."""

    def test_broadcast_tip_goes_to_creator(self, channel_layer, user, creator):
        tip = PaymentFactory(payer=user, creator=creator)

        PaymentNotificationService.broadcast_tip(tip)

        [(group, event)] = sent_events(channel_layer)
        assert group == user_group_name(creator.user_id)
        assert event["type"] == "tip_received"
        assert event["amount"] == 1000
        assert event["payee_share"] == 950
        assert event["message"] == "Great work"
        assert event["content_id"] is None

    def test_invalidation_deduplicates_and_skips_none(self, channel_layer, user):
        PaymentNotificationService.send_invalidation([user.id, None, user.id], ["payments"])

        assert sent_events(channel_layer) == [
            (user_group_name(user.id), {"type": "invalidate", "resources": ["payments"]})
        ]

    def test_payout_event(self, channel_layer, creator):
        payout = PayoutFactory(creator=creator, status=PayoutStatus.FAILED, failure_reason="Invalid PIX key")

        PaymentNotificationService.send_payout_event(payout, "payout_failed")

        [(group, event)] = sent_events(channel_layer)
        assert group == user_group_name(creator.user_id)
        assert event == {
            "type": "payout_failed",
            "payout_id": str(payout.id),
            "amount": 5000,
            "failure_reason": "Invalid PIX key",
        }

    def test_no_channel_layer_is_noop(self, user):
        with patch("notifications.services.get_channel_layer", return_value=None):
            PaymentNotificationService.send_event(user.id, {"type": "invalidate"})


class TestInvalidateEarnings:
    def test_drops_cached_balance(self, creator):
        BalanceLedger.get_cached_balance(creator.id)
        BalanceLedger.credit(creator.id, 2500, idempotency_key="credit:cache")
        assert BalanceLedger.get_cached_balance(creator.id).available == 0

        PaymentNotificationService.invalidate_earnings(creator.id)

        assert BalanceLedger.get_cached_balance(creator.id).available == 2500

    def test_none_creator_is_ignored(self, db):
        PaymentNotificationService.invalidate_earnings(None)
