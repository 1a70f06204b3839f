"""
Tests for EntitlementService.

Covers the grant and revoke handlers for every metadata variant and the
access queries used by the secure media service.
"""

from datetime import timedelta

from django.utils import timezone

from content.models import ContentPurchase, ContentVisibility, PackPurchase
from payments.models import Subscription
from payments.services import EntitlementService, ReconciliationService
from payments.state_machines import PaymentStatus, SubscriptionStatus
from payments.tests.factories import (
    ContentFactory,
    ConversationFactory,
    MessageFactory,
    MessagePaymentFactory,
    PackPaymentFactory,
    PPVPaymentFactory,
    ProPlanPaymentFactory,
    SubscriptionFactory,
    SubscriptionPaymentFactory,
    UserFactory,
)
from payments.types import MediaItemUnlock


CONFIRMED = PaymentStatus.CONFIRMED


# =============================================================================
# Grants
# =============================================================================


class TestGrantSubscription:
    """Tests for subscription grants."""

    def test_creates_subscription_and_counts_subscriber(self, user, creator):
        """Should start a subscription and bump subscriber_count."""
        payment = SubscriptionPaymentFactory(payer=user, creator=creator, status=CONFIRMED)

        EntitlementService.grant(payment)

        subscription = Subscription.objects.get(subscriber=user, creator=creator)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.payment == payment
        assert subscription.price_paid == 1990
        assert subscription.expires_at > timezone.now() + timedelta(days=27)
        creator.refresh_from_db()
        assert creator.subscriber_count == 1
        payment.refresh_from_db()
        assert payment.subscription == subscription

    def test_extends_active_subscription(self, user, creator):
        """Should extend instead of opening a second subscription."""
        existing = SubscriptionFactory(subscriber=user, creator=creator)
        old_expiry = existing.expires_at
        payment = SubscriptionPaymentFactory(
            payer=user,
            creator=creator,
            status=CONFIRMED,
            metadata={"duration_months": 3},
            amount=5373,
            platform_fee=537,
            payee_share=4836,
        )

        EntitlementService.grant(payment)

        assert Subscription.objects.filter(subscriber=user, creator=creator).count() == 1
        existing.refresh_from_db()
        assert existing.expires_at > old_expiry + timedelta(days=85)
        assert existing.duration_months == 3
        assert existing.price_paid == 5373
        creator.refresh_from_db()
        assert creator.subscriber_count == 0

    def test_regrant_is_noop(self, user, creator):
        """A payment already linked to a subscription grants nothing more."""
        payment = SubscriptionPaymentFactory(payer=user, creator=creator, status=CONFIRMED)
        EntitlementService.grant(payment)
        expires_at = Subscription.objects.get(subscriber=user).expires_at

        EntitlementService.grant(payment)

        assert Subscription.objects.get(subscriber=user).expires_at == expires_at
        creator.refresh_from_db()
        assert creator.subscriber_count == 1


class TestGrantContent:
    """Tests for whole-content and media item grants."""

    def test_whole_content(self, user, ppv_content):
        payment = PPVPaymentFactory(
            payer=user, creator=ppv_content.creator, content=ppv_content, status=CONFIRMED
        )

        EntitlementService.grant(payment)

        purchase = ContentPurchase.objects.get(user=user, content=ppv_content)
        assert purchase.media_index is None
        assert purchase.payment == payment

    def test_media_item(self, user, ppv_content):
        payment = PPVPaymentFactory(
            payer=user,
            creator=ppv_content.creator,
            content=ppv_content,
            status=CONFIRMED,
            metadata=MediaItemUnlock(content_id=ppv_content.id, media_index=1).to_metadata(),
            amount=1200,
            platform_fee=120,
            payee_share=1080,
        )

        EntitlementService.grant(payment)

        purchase = ContentPurchase.objects.get(user=user, content=ppv_content)
        assert purchase.media_index == 1

    def test_grant_twice_keeps_one_purchase(self, user, ppv_content):
        payment = PPVPaymentFactory(
            payer=user, creator=ppv_content.creator, content=ppv_content, status=CONFIRMED
        )

        EntitlementService.grant(payment)
        EntitlementService.grant(payment)

        assert ContentPurchase.objects.filter(user=user, content=ppv_content).count() == 1

    def test_repurchase_reinstates_revoked(self, user, ppv_content):
        """A new payment reactivates a revoked purchase instead of duplicating it."""
        first = PPVPaymentFactory(
            payer=user, creator=ppv_content.creator, content=ppv_content, status=CONFIRMED
        )
        EntitlementService.grant(first)
        EntitlementService.revoke(first)

        second = PPVPaymentFactory(
            payer=user, creator=ppv_content.creator, content=ppv_content, status=CONFIRMED
        )
        EntitlementService.grant(second)

        purchase = ContentPurchase.objects.get(user=user, content=ppv_content)
        assert not purchase.is_revoked
        assert purchase.payment == second


class TestGrantOtherVariants:
    """Tests for pack, message, pro plan and tip grants."""

    def test_pack_counts_sale_once(self, user, pack):
        payment = PackPaymentFactory(payer=user, creator=pack.creator, pack=pack, status=CONFIRMED)

        EntitlementService.grant(payment)
        EntitlementService.grant(payment)

        assert PackPurchase.objects.filter(user=user, pack=pack).count() == 1
        pack.refresh_from_db()
        assert pack.sales_count == 1

    def test_message_is_marked_purchased(self, user, creator):
        message = MessageFactory(conversation=ConversationFactory(user=user, creator=creator))
        payment = MessagePaymentFactory(
            payer=user, creator=creator, message=message, status=CONFIRMED
        )

        EntitlementService.grant(payment)

        message.refresh_from_db()
        assert message.is_purchased is True

    def test_pro_plan_activates_creator_profile(self, creator):
        payment = ProPlanPaymentFactory(payer=creator.user, status=CONFIRMED)

        EntitlementService.grant(payment)

        creator.refresh_from_db()
        assert creator.is_pro is True
        assert creator.has_active_pro_plan
        assert creator.pro_expires_at > timezone.now() + timedelta(days=29)

    def test_tip_grants_nothing(self, pending_tip):
        EntitlementService.grant(pending_tip)

        assert not ContentPurchase.objects.exists()
        assert not Subscription.objects.exists()


# =============================================================================
# Revokes
# =============================================================================


class TestRevoke:
    """Tests for EntitlementService.revoke()."""

    def test_cancels_subscription(self, user, creator):
        payment = SubscriptionPaymentFactory(payer=user, creator=creator, status=CONFIRMED)
        EntitlementService.grant(payment)
        payment.refresh_from_db()

        EntitlementService.revoke(payment)

        subscription = Subscription.objects.get(subscriber=user)
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert not EntitlementService.has_active_subscription(user.id, creator.id)

    def test_revokes_content_purchase(self, user, ppv_content):
        payment = PPVPaymentFactory(
            payer=user, creator=ppv_content.creator, content=ppv_content, status=CONFIRMED
        )
        EntitlementService.grant(payment)

        EntitlementService.revoke(payment)

        assert ContentPurchase.objects.get(user=user).is_revoked
        assert not EntitlementService.has_content_access(user.id, ppv_content)

    def test_revokes_pack_purchase(self, user, pack):
        payment = PackPaymentFactory(payer=user, creator=pack.creator, pack=pack, status=CONFIRMED)
        EntitlementService.grant(payment)

        EntitlementService.revoke(payment)

        assert not EntitlementService.has_pack_access(user.id, pack)

    def test_relocks_message(self, user, creator):
        message = MessageFactory(conversation=ConversationFactory(user=user, creator=creator))
        payment = MessagePaymentFactory(
            payer=user, creator=creator, message=message, status=CONFIRMED
        )
        EntitlementService.grant(payment)

        EntitlementService.revoke(payment)

        message.refresh_from_db()
        assert message.is_purchased is False

    def test_ends_pro_plan(self, creator):
        payment = ProPlanPaymentFactory(payer=creator.user, status=CONFIRMED)
        EntitlementService.grant(payment)

        EntitlementService.revoke(payment)

        creator.refresh_from_db()
        assert creator.is_pro is False
        assert creator.pro_expires_at is None

    def test_refund_policy_defaults_to_keeping_access(self, settings):
        settings.REFUND_REVOKES_ENTITLEMENTS = False
        assert EntitlementService.refund_revokes_entitlements() is False

        settings.REFUND_REVOKES_ENTITLEMENTS = True
        assert EntitlementService.refund_revokes_entitlements() is True


# =============================================================================
# Access Queries
# =============================================================================


class TestHasContentAccess:
    """Tests for EntitlementService.has_content_access()."""

    def test_owner_always_has_access(self, ppv_content):
        assert EntitlementService.has_content_access(ppv_content.creator.user_id, ppv_content)

    def test_public_content_is_open(self, user, creator):
        content = ContentFactory(creator=creator, visibility=ContentVisibility.PUBLIC, ppv_price=None)

        assert EntitlementService.has_content_access(user.id, content)

    def test_subscriber_content_needs_live_subscription(self, user, creator):
        content = ContentFactory(creator=creator, visibility=ContentVisibility.SUBSCRIBERS, ppv_price=None)
        assert not EntitlementService.has_content_access(user.id, content)

        SubscriptionFactory(subscriber=user, creator=creator)
        assert EntitlementService.has_content_access(user.id, content)

    def test_lapsed_subscription_gives_no_access(self, user, creator):
        content = ContentFactory(creator=creator, visibility=ContentVisibility.SUBSCRIBERS, ppv_price=None)
        SubscriptionFactory(
            subscriber=user, creator=creator, expires_at=timezone.now() - timedelta(seconds=1)
        )

        assert not EntitlementService.has_content_access(user.id, content)

    def test_subscription_does_not_open_ppv(self, user, ppv_content):
        SubscriptionFactory(subscriber=user, creator=ppv_content.creator)

        assert not EntitlementService.has_content_access(user.id, ppv_content)

    def test_whole_purchase_opens_every_item(self, user, ppv_content):
        ContentPurchase.objects.create(user=user, content=ppv_content)

        assert EntitlementService.has_content_access(user.id, ppv_content)
        assert EntitlementService.has_content_access(user.id, ppv_content, media_index=1)

    def test_item_purchase_opens_only_that_item(self, user, ppv_content):
        ContentPurchase.objects.create(user=user, content=ppv_content, media_index=1)

        assert EntitlementService.has_content_access(user.id, ppv_content, media_index=1)
        assert not EntitlementService.has_content_access(user.id, ppv_content, media_index=0)
        assert not EntitlementService.has_content_access(user.id, ppv_content)


class TestHasPackAndMessageAccess:
    """Tests for has_pack_access() and has_message_access()."""

    def test_pack_owner_and_buyer(self, user, pack):
        assert EntitlementService.has_pack_access(pack.creator.user_id, pack)
        assert not EntitlementService.has_pack_access(user.id, pack)

        PackPurchase.objects.create(user=user, pack=pack)
        assert EntitlementService.has_pack_access(user.id, pack)

    def test_message_sender_always(self, creator):
        message = MessageFactory(conversation=ConversationFactory(creator=creator))

        assert EntitlementService.has_message_access(creator.user_id, message)

    def test_recipient_needs_payment(self, user, creator):
        message = MessageFactory(conversation=ConversationFactory(user=user, creator=creator))
        assert not EntitlementService.has_message_access(user.id, message)

        message.is_purchased = True
        assert EntitlementService.has_message_access(user.id, message)

    def test_free_message_is_open_to_participants(self, user, creator):
        message = MessageFactory(
            conversation=ConversationFactory(user=user, creator=creator), ppv_price=None
        )

        assert EntitlementService.has_message_access(user.id, message)

    def test_outsider_never_has_access(self, creator):
        message = MessageFactory(conversation=ConversationFactory(creator=creator), is_purchased=True)
        outsider = UserFactory()

        assert not EntitlementService.has_message_access(outsider.id, message)



class TestRefundedGrants:
    """Refunded payments stop granting access even when the rows are kept."""

    def test_content_purchase_row_kept_but_closed(self, user, ppv_content, settings):
        settings.REFUND_REVOKES_ENTITLEMENTS = False
        payment = PPVPaymentFactory(payer=user, creator=ppv_content.creator, content=ppv_content)
        ReconciliationService.confirm(payment.id)

        ReconciliationService.refund(payment.id)

        assert not ContentPurchase.objects.get(user=user).is_revoked
        assert not EntitlementService.has_content_access(user.id, ppv_content)

    def test_pack_purchase_closed(self, user, pack, settings):
        settings.REFUND_REVOKES_ENTITLEMENTS = False
        payment = PackPaymentFactory(payer=user, creator=pack.creator, pack=pack)
        ReconciliationService.confirm(payment.id)
        assert EntitlementService.has_pack_access(user.id, pack)

        ReconciliationService.refund(payment.id)

        assert not EntitlementService.has_pack_access(user.id, pack)

    def test_subscription_closed(self, user, creator, settings):
        settings.REFUND_REVOKES_ENTITLEMENTS = False
        payment = SubscriptionPaymentFactory(payer=user, creator=creator)
        ReconciliationService.confirm(payment.id)

        ReconciliationService.refund(payment.id)

        assert Subscription.objects.get(subscriber=user).status == SubscriptionStatus.ACTIVE
        assert not EntitlementService.has_active_subscription(user.id, creator.id)

    def test_subscription_with_another_paid_period_stays_open(self, user, creator, settings):
        settings.REFUND_REVOKES_ENTITLEMENTS = False
        first = SubscriptionPaymentFactory(payer=user, creator=creator)
        ReconciliationService.confirm(first.id)
        extension = SubscriptionPaymentFactory(payer=user, creator=creator)
        ReconciliationService.confirm(extension.id)

        ReconciliationService.refund(extension.id)

        assert EntitlementService.has_active_subscription(user.id, creator.id)

    def test_refunded_extension_only_shortens(self, user, creator, settings):
        """Revoking an extension keeps the months paid by earlier payments."""
        settings.REFUND_REVOKES_ENTITLEMENTS = True
        first = SubscriptionPaymentFactory(payer=user, creator=creator)
        ReconciliationService.confirm(first.id)
        paid_until = Subscription.objects.get(subscriber=user).expires_at
        extension = SubscriptionPaymentFactory(payer=user, creator=creator)
        ReconciliationService.confirm(extension.id)

        ReconciliationService.refund(extension.id)

        subscription = Subscription.objects.get(subscriber=user)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert abs(subscription.expires_at - paid_until) <= timedelta(days=3)
        assert EntitlementService.has_active_subscription(user.id, creator.id)

    def test_repurchase_replaces_refunded_purchase(self, user, ppv_content, settings):
        settings.REFUND_REVOKES_ENTITLEMENTS = False
        first = PPVPaymentFactory(payer=user, creator=ppv_content.creator, content=ppv_content)
        ReconciliationService.confirm(first.id)
        ReconciliationService.refund(first.id)

        second = PPVPaymentFactory(payer=user, creator=ppv_content.creator, content=ppv_content)
        ReconciliationService.confirm(second.id)

        purchase = ContentPurchase.objects.get(user=user, content=ppv_content)
        assert purchase.payment == second
        assert EntitlementService.has_content_access(user.id, ppv_content)

    def test_resubscribing_after_refund_starts_from_now(self, user, creator, settings):
        settings.REFUND_REVOKES_ENTITLEMENTS = False
        first = SubscriptionPaymentFactory(payer=user, creator=creator)
        ReconciliationService.confirm(first.id)
        ReconciliationService.refund(first.id)

        second = SubscriptionPaymentFactory(payer=user, creator=creator)
        ReconciliationService.confirm(second.id)

        subscription = Subscription.objects.get(subscriber=user)
        assert subscription.expires_at < timezone.now() + timedelta(days=32)
        assert EntitlementService.has_active_subscription(user.id, creator.id)
