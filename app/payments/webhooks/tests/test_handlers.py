"""
Tests for webhook event handlers.

Tests cover:
- Handler registry and dispatch
- PAYMENT_* events converging with the reconciliation transitions
- Out-of-order delivery (refund before confirmation)
- TRANSFER_* events completing or failing payouts
"""

from content.models import ContentPurchase
from payments.ledger.models import BalanceEntry
from payments.ledger.services import BalanceLedger
from payments.services import ReconciliationService
from payments.state_machines import PaymentStatus, PayoutStatus
from payments.tasks import process_webhook_event
from payments.tests.factories import PaymentFactory, PayoutFactory, PPVPaymentFactory
from payments.webhooks.handlers import (
    WEBHOOK_HANDLERS,
    dispatch_webhook,
    find_payment,
    register_handler,
)
from payments.webhooks.tests.payloads import payment_notification, transfer_notification


# =============================================================================
# Registry Tests
# =============================================================================


class TestRegistry:
    def test_payment_events_are_registered(self):
        for event_type in (
            "PAYMENT_CONFIRMED",
            "PAYMENT_RECEIVED",
            "PAYMENT_OVERDUE",
            "PAYMENT_DELETED",
            "PAYMENT_REFUNDED",
            "TRANSFER_DONE",
            "TRANSFER_FAILED",
            "TRANSFER_CANCELLED",
        ):
            assert event_type in WEBHOOK_HANDLERS

    def test_register_handler_adds_to_registry(self):
        @register_handler("TEST_EVENT_A", "TEST_EVENT_B")
        def handler(webhook_event):
            return None

        try:
            assert WEBHOOK_HANDLERS["TEST_EVENT_A"] is handler
            assert WEBHOOK_HANDLERS["TEST_EVENT_B"] is handler
        finally:
            WEBHOOK_HANDLERS.pop("TEST_EVENT_A")
            WEBHOOK_HANDLERS.pop("TEST_EVENT_B")

    def test_unknown_event_is_acknowledged(self, make_event):
        event = make_event({"id": "evt_x", "event": "PAYMENT_CHARGEBACK_DISPUTE"})

        result = dispatch_webhook(event)

        assert result.success


class TestFindPayment:
    def test_by_charge_id(self, pending_tip):
        assert find_payment({"id": pending_tip.gateway_charge_id}) == pending_tip

    def test_by_external_reference(self, pending_tip):
        data = {"id": "pay_unknown", "externalReference": str(pending_tip.id)}

        assert find_payment(data) == pending_tip

    def test_malformed_reference(self, db):
        assert find_payment({"id": "pay_unknown", "externalReference": "order-17"}) is None
        assert find_payment({}) is None


# =============================================================================
# Payment Handlers
# =============================================================================


class TestPaymentHandlers:
    """Tests for PAYMENT_* handlers."""

    def test_received_confirms_and_credits(self, pending_tip, creator, make_event):
        event = make_event(payment_notification("PAYMENT_RECEIVED", pending_tip.gateway_charge_id))

        result = dispatch_webhook(event)

        assert result.success
        assert result.data.changed is True
        pending_tip.refresh_from_db()
        assert pending_tip.status == PaymentStatus.CONFIRMED
        assert BalanceLedger.get_balance(creator.id).available == 950

    def test_confirmed_after_received_is_noop(self, pending_tip, creator, make_event):
        """Both paid notifications credit the creator once."""
        dispatch_webhook(make_event(payment_notification("PAYMENT_RECEIVED", pending_tip.gateway_charge_id)))

        result = dispatch_webhook(
            make_event(payment_notification("PAYMENT_CONFIRMED", pending_tip.gateway_charge_id))
        )

        assert result.success
        assert result.data.changed is False
        assert BalanceLedger.get_balance(creator.id).available == 950

    def test_webhook_after_poll_is_noop(self, pending_tip, make_event):
        ReconciliationService.confirm(pending_tip.id)

        result = dispatch_webhook(
            make_event(payment_notification("PAYMENT_RECEIVED", pending_tip.gateway_charge_id))
        )

        assert result.success
        assert result.data.changed is False

    def test_redelivered_ppv_confirmation_grants_and_credits_once(self, user, ppv_content, make_event):
        """Two PAYMENT_CONFIRMED deliveries leave one purchase and one credit."""
        payment = PPVPaymentFactory(payer=user, creator=ppv_content.creator, content=ppv_content)
        notification = payment_notification("PAYMENT_CONFIRMED", payment.gateway_charge_id)
        first = make_event(notification)
        second = make_event({**notification, "id": "evt_redelivery"})

        process_webhook_event(str(first.id))
        result = process_webhook_event(str(second.id))

        assert result["status"] == "processed"
        payment.refresh_from_db()
        assert payment.status == PaymentStatus.CONFIRMED
        assert ContentPurchase.objects.filter(user=user, content=ppv_content).count() == 1
        assert BalanceEntry.objects.filter(payment=payment).count() == 1
        assert BalanceLedger.get_balance(ppv_content.creator_id).available == 1350

    def test_found_by_external_reference(self, user, creator, make_event):
        payment = PaymentFactory(payer=user, creator=creator, gateway_charge_id=None)
        event = make_event(payment_notification("PAYMENT_RECEIVED", "pay_late", str(payment.id)))

        result = dispatch_webhook(event)

        assert result.success
        payment.refresh_from_db()
        assert payment.status == PaymentStatus.CONFIRMED

    def test_unknown_payment_fails_for_retry(self, make_event):
        result = dispatch_webhook(make_event(payment_notification("PAYMENT_RECEIVED", "pay_unknown")))

        assert not result.success
        assert result.error_code == "PAYMENT_NOT_FOUND"

    def test_missing_payment_object(self, make_event):
        result = dispatch_webhook(make_event({"id": "evt_empty", "event": "PAYMENT_RECEIVED"}))

        assert not result.success
        assert result.error_code == "INVALID_WEBHOOK_PAYLOAD"

    def test_overdue_expires(self, pending_tip, make_event):
        dispatch_webhook(make_event(payment_notification("PAYMENT_OVERDUE", pending_tip.gateway_charge_id)))

        pending_tip.refresh_from_db()
        assert pending_tip.status == PaymentStatus.EXPIRED

    def test_deleted_fails(self, pending_tip, make_event):
        dispatch_webhook(make_event(payment_notification("PAYMENT_DELETED", pending_tip.gateway_charge_id)))

        pending_tip.refresh_from_db()
        assert pending_tip.status == PaymentStatus.FAILED
        assert pending_tip.failure_reason == "Charge deleted at gateway"

    def test_refund_after_confirmation(self, pending_tip, creator, make_event):
        dispatch_webhook(make_event(payment_notification("PAYMENT_RECEIVED", pending_tip.gateway_charge_id)))

        result = dispatch_webhook(
            make_event(payment_notification("PAYMENT_REFUNDED", pending_tip.gateway_charge_id))
        )

        assert result.success
        pending_tip.refresh_from_db()
        assert pending_tip.status == PaymentStatus.REFUNDED
        assert BalanceLedger.get_balance(creator.id).available == 0

    def test_refund_before_confirmation_is_retried(self, pending_tip, make_event):
        """A refund that overtakes its confirmation fails until the confirmation lands."""
        refund_event = make_event(payment_notification("PAYMENT_REFUNDED", pending_tip.gateway_charge_id))

        first = dispatch_webhook(refund_event)
        assert not first.success
        assert first.error_code == "REFUND_NOT_ALLOWED"

        dispatch_webhook(make_event(payment_notification("PAYMENT_RECEIVED", pending_tip.gateway_charge_id)))
        retried = dispatch_webhook(refund_event)

        assert retried.success
        pending_tip.refresh_from_db()
        assert pending_tip.status == PaymentStatus.REFUNDED

    def test_late_paid_notification_for_expired_payment(self, pending_tip, creator, make_event):
        """An expired payment is never confirmed by a late notification."""
        ReconciliationService.expire(pending_tip.id)

        result = dispatch_webhook(
            make_event(payment_notification("PAYMENT_RECEIVED", pending_tip.gateway_charge_id))
        )

        assert result.success
        assert result.data.status == PaymentStatus.EXPIRED
        assert BalanceLedger.get_balance(creator.id).available == 0


# =============================================================================
# Transfer Handlers
# =============================================================================


class TestTransferHandlers:
    """Tests for TRANSFER_* handlers."""

    def test_done_completes_payout(self, processing_payout, make_event):
        result = dispatch_webhook(make_event(transfer_notification("TRANSFER_DONE", "tra_webhook")))

        assert result.success
        assert result.data["changed"] is True
        processing_payout.refresh_from_db()
        assert processing_payout.status == PayoutStatus.COMPLETED

    def test_failed_releases_funds(self, processing_payout, creator, make_event):
        event = make_event(
            transfer_notification("TRANSFER_FAILED", "tra_webhook", failReason="Invalid PIX key")
        )

        result = dispatch_webhook(event)

        assert result.success
        processing_payout.refresh_from_db()
        assert processing_payout.status == PayoutStatus.FAILED
        assert processing_payout.failure_reason == "Invalid PIX key"
        assert BalanceLedger.get_balance(creator.id).available == processing_payout.amount

    def test_cancelled_uses_event_name_as_reason(self, processing_payout, make_event):
        dispatch_webhook(make_event(transfer_notification("TRANSFER_CANCELLED", "tra_webhook")))

        processing_payout.refresh_from_db()
        assert processing_payout.failure_reason == "transfer_cancelled"

    def test_found_by_external_reference(self, creator, make_event):
        payout = PayoutFactory(creator=creator, status=PayoutStatus.PROCESSING, gateway_transfer_id="tra_other")
        event = make_event(transfer_notification("TRANSFER_DONE", "tra_unknown", str(payout.id)))

        dispatch_webhook(event)

        payout.refresh_from_db()
        assert payout.status == PayoutStatus.COMPLETED

    def test_done_before_transfer_id_stored_is_retried(self, creator, make_event):
        payout = PayoutFactory(creator=creator)

        result = dispatch_webhook(make_event(transfer_notification("TRANSFER_DONE", "tra_x", str(payout.id))))

        assert not result.success
        assert result.error_code == "PAYOUT_NOT_PROCESSING"

    def test_unknown_payout(self, make_event):
        result = dispatch_webhook(make_event(transfer_notification("TRANSFER_DONE", "tra_unknown")))

        assert result.error_code == "PAYOUT_NOT_FOUND"

    def test_duplicate_done_is_noop(self, processing_payout, make_event):
        dispatch_webhook(make_event(transfer_notification("TRANSFER_DONE", "tra_webhook")))

        result = dispatch_webhook(
            make_event({**transfer_notification("TRANSFER_DONE", "tra_webhook"), "id": "evt_redelivered"})
        )

        assert result.success
        assert result.data["changed"] is False
