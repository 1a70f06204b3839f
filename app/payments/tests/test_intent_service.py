"""
Tests for PaymentIntentService.

Each create_* method is tested for its happy path (pending payment with the
right split, typed metadata and PIX instructions) and for the
preconditions that must reject a purchase before anything is written.
"""

import uuid
from datetime import timedelta

import pytest
from django.utils import timezone

from content.models import ContentPurchase, ContentVisibility, PackPurchase
from payments.exceptions import (
    AmountBelowMinimumError,
    DuplicatePurchaseError,
    GatewayUnavailableError,
    NotPurchasableError,
    ProductNotFoundError,
)
from payments.models import Payment
from payments.services import PaymentIntentService
from payments.state_machines import PaymentKind, PaymentStatus
from payments.tests.factories import (
    ContentFactory,
    ConversationFactory,
    CreatorProfileFactory,
    MediaPackFactory,
    MessageFactory,
    PackPaymentFactory,
    PPVPaymentFactory,
    SubscriptionFactory,
    UserFactory,
)
from payments.types import (
    ContentUnlock,
    MediaItemUnlock,
    MessageUnlock,
    PackUnlock,
    ProPlanTerms,
    SubscriptionTerms,
    TipDetails,
)


# =============================================================================
# Subscriptions
# =============================================================================


class TestCreateSubscriptionPayment:
    """Tests for create_subscription_payment()."""

    def test_opens_pending_payment_with_pix_instructions(self, user, creator, mock_gateway):
        """Should price by duration and charge amount plus gateway fee."""
        result = PaymentIntentService.create_subscription_payment(
            payer=user, creator_id=creator.id, duration_months=3
        )

        payment = result.payment
        assert payment.status == PaymentStatus.PENDING
        assert payment.kind == PaymentKind.SUBSCRIPTION
        assert payment.amount == 5373
        assert payment.platform_fee == 537
        assert payment.payee_share == 4836
        assert payment.gateway_fee == 199
        assert payment.terms == SubscriptionTerms(duration_months=3)
        assert payment.gateway_charge_id.startswith("pay_test_")
        assert result.instructions.total_charged == 5572
        assert result.instructions.qr_payload == payment.pix_qr_payload

    def test_charge_uses_payment_id_as_reference(self, user, creator, mock_gateway):
        result = PaymentIntentService.create_subscription_payment(
            payer=user, creator_id=creator.id
        )

        params = mock_gateway.create_pix_charge.call_args.args[0]
        assert params.external_reference == str(result.payment.id)
        assert params.amount_centavos == 2189
        assert params.customer_id == "cus_test"

    def test_unknown_creator(self, user, mock_gateway):
        with pytest.raises(ProductNotFoundError) as exc_info:
            PaymentIntentService.create_subscription_payment(payer=user, creator_id=uuid.uuid4())

        assert exc_info.value.error_code == "CREATOR_NOT_FOUND"
        assert not Payment.objects.exists()

    def test_cannot_subscribe_to_self(self, creator, mock_gateway):
        with pytest.raises(NotPurchasableError) as exc_info:
            PaymentIntentService.create_subscription_payment(
                payer=creator.user, creator_id=creator.id
            )

        assert exc_info.value.error_code == "SELF_PAYMENT"

    def test_creator_without_subscription_price(self, user, mock_gateway):
        creator = CreatorProfileFactory(subscription_price=0)

        with pytest.raises(NotPurchasableError) as exc_info:
            PaymentIntentService.create_subscription_payment(payer=user, creator_id=creator.id)

        assert exc_info.value.error_code == "SUBSCRIPTIONS_DISABLED"

    def test_already_subscribed(self, user, creator, mock_gateway):
        SubscriptionFactory(subscriber=user, creator=creator)

        with pytest.raises(DuplicatePurchaseError) as exc_info:
            PaymentIntentService.create_subscription_payment(payer=user, creator_id=creator.id)

        assert exc_info.value.error_code == "ALREADY_SUBSCRIBED"
        mock_gateway.create_pix_charge.assert_not_called()


# =============================================================================
# PPV
# =============================================================================


class TestCreatePPVPayment:
    """Tests for create_ppv_payment()."""

    def test_whole_content(self, user, ppv_content, mock_gateway):
        result = PaymentIntentService.create_ppv_payment(payer=user, content_id=ppv_content.id)

        payment = result.payment
        assert payment.kind == PaymentKind.PPV
        assert payment.amount == 1500
        assert payment.content == ppv_content
        assert payment.creator == ppv_content.creator
        assert payment.terms == ContentUnlock(content_id=ppv_content.id)

    def test_single_media_item(self, user, ppv_content, mock_gateway):
        """Should sell an item at its own price with a tagged variant."""
        result = PaymentIntentService.create_ppv_payment(
            payer=user, content_id=ppv_content.id, media_index=1
        )

        assert result.payment.amount == 1200
        assert result.payment.metadata["variant"] == "media_item"
        assert result.payment.terms == MediaItemUnlock(content_id=ppv_content.id, media_index=1)

    def test_item_without_own_price(self, user, ppv_content, mock_gateway):
        with pytest.raises(NotPurchasableError) as exc_info:
            PaymentIntentService.create_ppv_payment(
                payer=user, content_id=ppv_content.id, media_index=0
            )

        assert exc_info.value.error_code == "MEDIA_ITEM_NOT_PPV"

    def test_item_out_of_range(self, user, ppv_content, mock_gateway):
        with pytest.raises(NotPurchasableError) as exc_info:
            PaymentIntentService.create_ppv_payment(
                payer=user, content_id=ppv_content.id, media_index=9
            )

        assert exc_info.value.error_code == "MEDIA_ITEM_NOT_FOUND"

    def test_content_not_ppv(self, user, creator, mock_gateway):
        content = ContentFactory(creator=creator, visibility=ContentVisibility.SUBSCRIBERS, ppv_price=None)

        with pytest.raises(NotPurchasableError) as exc_info:
            PaymentIntentService.create_ppv_payment(payer=user, content_id=content.id)

        assert exc_info.value.error_code == "CONTENT_NOT_PPV"

    def test_already_purchased(self, user, ppv_content, mock_gateway):
        ContentPurchase.objects.create(user=user, content=ppv_content)

        with pytest.raises(DuplicatePurchaseError):
            PaymentIntentService.create_ppv_payment(payer=user, content_id=ppv_content.id)

    def test_whole_purchase_covers_items(self, user, ppv_content, mock_gateway):
        ContentPurchase.objects.create(user=user, content=ppv_content)

        with pytest.raises(DuplicatePurchaseError):
            PaymentIntentService.create_ppv_payment(
                payer=user, content_id=ppv_content.id, media_index=1
            )

    def test_revoked_purchase_can_be_bought_again(self, user, ppv_content, mock_gateway):
        ContentPurchase.objects.create(user=user, content=ppv_content, revoked_at=timezone.now())

        result = PaymentIntentService.create_ppv_payment(payer=user, content_id=ppv_content.id)

        assert result.payment.status == PaymentStatus.PENDING

    def test_refunded_purchase_can_be_bought_again(self, user, ppv_content, mock_gateway):
        refunded = PPVPaymentFactory(
            payer=user, creator=ppv_content.creator, content=ppv_content, status=PaymentStatus.REFUNDED
        )
        ContentPurchase.objects.create(user=user, content=ppv_content, payment=refunded)

        result = PaymentIntentService.create_ppv_payment(payer=user, content_id=ppv_content.id)

        assert result.payment.status == PaymentStatus.PENDING

    def test_own_content(self, ppv_content, mock_gateway):
        with pytest.raises(NotPurchasableError):
            PaymentIntentService.create_ppv_payment(
                payer=ppv_content.creator.user, content_id=ppv_content.id
            )


# =============================================================================
# Tips, Pro Plan, Packs, Messages
# =============================================================================


class TestCreateTipPayment:
    """Tests for create_tip_payment()."""

    def test_tip_with_message_and_content(self, user, ppv_content, mock_gateway):
        result = PaymentIntentService.create_tip_payment(
            payer=user,
            creator_id=ppv_content.creator_id,
            amount=2000,
            message="Great stream!",
            content_id=ppv_content.id,
        )

        payment = result.payment
        assert payment.kind == PaymentKind.TIP
        assert payment.platform_fee == 100
        assert payment.payee_share == 1900
        assert payment.terms == TipDetails(message="Great stream!", content_id=ppv_content.id)

    def test_below_minimum(self, user, creator, mock_gateway):
        with pytest.raises(AmountBelowMinimumError):
            PaymentIntentService.create_tip_payment(payer=user, creator_id=creator.id, amount=500)

        assert not Payment.objects.exists()

    def test_content_of_another_creator(self, user, creator, mock_gateway):
        other_content = ContentFactory()

        with pytest.raises(NotPurchasableError) as exc_info:
            PaymentIntentService.create_tip_payment(
                payer=user, creator_id=creator.id, amount=2000, content_id=other_content.id
            )

        assert exc_info.value.error_code == "CONTENT_CREATOR_MISMATCH"


class TestCreateProPlanPayment:
    """Tests for create_pro_plan_payment()."""

    def test_platform_keeps_everything(self, creator, mock_gateway):
        result = PaymentIntentService.create_pro_plan_payment(payer=creator.user)

        payment = result.payment
        assert payment.creator is None
        assert payment.amount == 4990
        assert payment.platform_fee == 4990
        assert payment.payee_share == 0
        assert payment.terms == ProPlanTerms(days=30)

    def test_only_creators(self, user, mock_gateway):
        with pytest.raises(NotPurchasableError) as exc_info:
            PaymentIntentService.create_pro_plan_payment(payer=user)

        assert exc_info.value.error_code == "NOT_A_CREATOR"

    def test_already_pro(self, db, mock_gateway):
        creator = CreatorProfileFactory(
            is_pro=True, pro_expires_at=timezone.now() + timedelta(days=5)
        )

        with pytest.raises(DuplicatePurchaseError) as exc_info:
            PaymentIntentService.create_pro_plan_payment(payer=creator.user)

        assert exc_info.value.error_code == "ALREADY_PRO"


class TestCreatePackPayment:
    """Tests for create_pack_payment()."""

    def test_pack(self, user, pack, mock_gateway):
        result = PaymentIntentService.create_pack_payment(payer=user, pack_id=pack.id)

        assert result.payment.kind == PaymentKind.PACK
        assert result.payment.amount == 2990
        assert result.payment.terms == PackUnlock(pack_id=pack.id)

    def test_inactive_pack(self, user, mock_gateway):
        """A withdrawn pack exists but is no longer for sale."""
        pack = MediaPackFactory(is_active=False)

        with pytest.raises(NotPurchasableError) as exc_info:
            PaymentIntentService.create_pack_payment(payer=user, pack_id=pack.id)

        assert exc_info.value.error_code == "PACK_INACTIVE"
        assert not Payment.objects.exists()

    def test_unknown_pack(self, user, mock_gateway):
        with pytest.raises(ProductNotFoundError) as exc_info:
            PaymentIntentService.create_pack_payment(payer=user, pack_id=uuid.uuid4())

        assert exc_info.value.error_code == "PACK_NOT_FOUND"

    def test_already_bought(self, user, pack, mock_gateway):
        PackPurchase.objects.create(user=user, pack=pack)

        with pytest.raises(DuplicatePurchaseError):
            PaymentIntentService.create_pack_payment(payer=user, pack_id=pack.id)

    def test_refunded_pack_can_be_bought_again(self, user, pack, mock_gateway):
        refunded = PackPaymentFactory(
            payer=user, creator=pack.creator, pack=pack, status=PaymentStatus.REFUNDED
        )
        PackPurchase.objects.create(user=user, pack=pack, payment=refunded)

        result = PaymentIntentService.create_pack_payment(payer=user, pack_id=pack.id)

        assert result.payment.kind == PaymentKind.PACK


class TestCreateMessagePPVPayment:
    """Tests for create_message_ppv_payment()."""

    def test_recipient_unlocks_message(self, user, creator, mock_gateway):
        message = MessageFactory(conversation=ConversationFactory(user=user, creator=creator))

        result = PaymentIntentService.create_message_ppv_payment(payer=user, message_id=message.id)

        assert result.payment.kind == PaymentKind.PPV
        assert result.payment.creator == creator
        assert result.payment.terms == MessageUnlock(message_id=message.id)

    def test_free_message(self, user, creator, mock_gateway):
        message = MessageFactory(
            conversation=ConversationFactory(user=user, creator=creator), ppv_price=None
        )

        with pytest.raises(NotPurchasableError) as exc_info:
            PaymentIntentService.create_message_ppv_payment(payer=user, message_id=message.id)

        assert exc_info.value.error_code == "MESSAGE_NOT_PPV"

    def test_not_the_recipient(self, creator, mock_gateway):
        message = MessageFactory(conversation=ConversationFactory(creator=creator))

        with pytest.raises(NotPurchasableError) as exc_info:
            PaymentIntentService.create_message_ppv_payment(
                payer=UserFactory(), message_id=message.id
            )

        assert exc_info.value.error_code == "NOT_MESSAGE_RECIPIENT"

    def test_already_unlocked(self, user, creator, mock_gateway):
        message = MessageFactory(
            conversation=ConversationFactory(user=user, creator=creator), is_purchased=True
        )

        with pytest.raises(DuplicatePurchaseError):
            PaymentIntentService.create_message_ppv_payment(payer=user, message_id=message.id)


# =============================================================================
# Gateway Failures
# =============================================================================


class TestGatewayFailure:
    """The payment is failed when the charge cannot be created."""

    def test_charge_failure_fails_payment_and_reraises(self, user, creator, mock_gateway):
        mock_gateway.create_pix_charge.side_effect = GatewayUnavailableError("Asaas is down")

        with pytest.raises(GatewayUnavailableError):
            PaymentIntentService.create_tip_payment(payer=user, creator_id=creator.id, amount=2000)

        payment = Payment.objects.get()
        assert payment.status == PaymentStatus.FAILED
        assert payment.gateway_charge_id is None
        assert "Asaas is down" in payment.failure_reason

    def test_customer_failure_writes_nothing(self, user, creator, mock_gateway):
        mock_gateway.create_customer.side_effect = GatewayUnavailableError("Asaas is down")

        with pytest.raises(GatewayUnavailableError):
            PaymentIntentService.create_tip_payment(payer=user, creator_id=creator.id, amount=2000)

        assert not Payment.objects.exists()
