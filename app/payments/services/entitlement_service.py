"""
Entitlement grant engine.

Turns a confirmed payment into what the payer bought, and answers "may this
user see this?" for the secure media service.

Grants are dispatched on the payment's typed metadata variant through a
handler registry. Every grant is insert-if-absent, so a retried
confirmation completes a missing half without duplicating the other.

Usage:
    from payments.services import EntitlementService

    # Inside the confirmation transaction
    EntitlementService.grant(payment)

    # Access checks
    EntitlementService.has_active_subscription(user.id, creator.id)
    EntitlementService.has_content_access(user.id, content, media_index=2)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Callable

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.db.models import Exists, F, OuterRef, Q
from django.utils import timezone

from chat.models import Message
from content.models import ContentPurchase, ContentVisibility, MediaPack, PackPurchase
from core.services import BaseService
from creators.models import CreatorProfile

from payments.models import Payment, Subscription
from payments.state_machines import PaymentKind, PaymentStatus, SubscriptionStatus
from payments.types import (
    ContentUnlock,
    MediaItemUnlock,
    MessageUnlock,
    PackUnlock,
    ProPlanTerms,
    SubscriptionTerms,
    TipDetails,
)

if TYPE_CHECKING:
    from content.models import Content


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps metadata variant classes to grant / revoke functions
GRANT_HANDLERS: dict[type, Callable] = {}
REVOKE_HANDLERS: dict[type, Callable] = {}


def register_grant(*variants: type) -> Callable:
    """
    Decorator to register the grant handler for one or more variants.

    Usage:
        @register_grant(ContentUnlock, MediaItemUnlock)
        def grant_content(payment: Payment, terms) -> None:
            ...
    """

    def decorator(func: Callable) -> Callable:
        for variant in variants:
            GRANT_HANDLERS[variant] = func
        return func

    return decorator


def register_revoke(*variants: type) -> Callable:
    """Decorator to register the revoke handler for one or more variants."""

    def decorator(func: Callable) -> Callable:
        for variant in variants:
            REVOKE_HANDLERS[variant] = func
        return func

    return decorator


# =============================================================================
# Grant Handlers
# =============================================================================


def _only_refunded(payments) -> bool:
    """True when ``payments`` holds refunded payments and no confirmed one."""
    if payments.filter(status=PaymentStatus.CONFIRMED).exists():
        return False
    return payments.filter(status=PaymentStatus.REFUNDED).exists()


def _needs_reinstating(purchase) -> bool:
    return purchase.is_revoked or (
        purchase.payment is not None and purchase.payment.status == PaymentStatus.REFUNDED
    )


@register_grant(SubscriptionTerms)
def grant_subscription(payment: Payment, terms: SubscriptionTerms) -> None:
    """
    Extend the active subscription, or start a new one.

    A new subscription increments the creator's subscriber_count.
    """
    if payment.subscription_id is not None:
        return

    subscription = (
        Subscription.objects.select_for_update()
        .filter(
            subscriber_id=payment.payer_id,
            creator_id=payment.creator_id,
            status=SubscriptionStatus.ACTIVE,
        )
        .first()
    )

    if subscription is not None:
        if _only_refunded(subscription.payments.all()):
            subscription.expires_at = timezone.now()
        subscription.extend(terms.duration_months)
        subscription.price_paid = payment.amount
        subscription.save(
            update_fields=["expires_at", "duration_months", "status", "price_paid", "updated_at"]
        )
        logger.info(
            "Subscription extended",
            extra={
                "subscription_id": str(subscription.id),
                "payment_id": str(payment.id),
                "expires_at": subscription.expires_at.isoformat(),
            },
        )
    else:
        now = timezone.now()
        subscription = Subscription.objects.create(
            subscriber_id=payment.payer_id,
            creator_id=payment.creator_id,
            price_paid=payment.amount,
            duration_months=terms.duration_months,
            starts_at=now,
            expires_at=now + relativedelta(months=terms.duration_months),
            status=SubscriptionStatus.ACTIVE,
            payment=payment,
        )
        CreatorProfile.objects.filter(id=payment.creator_id).update(
            subscriber_count=F("subscriber_count") + 1,
            updated_at=now,
        )
        logger.info(
            "Subscription created",
            extra={
                "subscription_id": str(subscription.id),
                "payment_id": str(payment.id),
            },
        )

    payment.subscription = subscription
    payment.save(update_fields=["subscription", "updated_at"])


@register_grant(ContentUnlock, MediaItemUnlock)
def grant_content(payment: Payment, terms: ContentUnlock | MediaItemUnlock) -> None:
    """Create the purchase, or reinstate a revoked or refunded one."""
    media_index = terms.media_index if isinstance(terms, MediaItemUnlock) else None
    purchase, created = ContentPurchase.objects.get_or_create(
        user_id=payment.payer_id,
        content_id=terms.content_id,
        media_index=media_index,
        defaults={"payment": payment},
    )
    if not created and _needs_reinstating(purchase):
        purchase.revoked_at = None
        purchase.payment = payment
        purchase.save(update_fields=["revoked_at", "payment", "updated_at"])


@register_grant(PackUnlock)
def grant_pack(payment: Payment, terms: PackUnlock) -> None:
    """Create the purchase (counting the sale), or reinstate a revoked or refunded one."""
    purchase, created = PackPurchase.objects.get_or_create(
        user_id=payment.payer_id,
        pack_id=terms.pack_id,
        defaults={"payment": payment},
    )
    if created:
        MediaPack.objects.filter(id=terms.pack_id).update(
            sales_count=F("sales_count") + 1,
            updated_at=timezone.now(),
        )
    elif _needs_reinstating(purchase):
        purchase.revoked_at = None
        purchase.payment = payment
        purchase.save(update_fields=["revoked_at", "payment", "updated_at"])


@register_grant(MessageUnlock)
def grant_message(payment: Payment, terms: MessageUnlock) -> None:
    Message.objects.filter(id=terms.message_id, is_purchased=False).update(
        is_purchased=True,
        updated_at=timezone.now(),
    )


@register_grant(ProPlanTerms)
def grant_pro_plan(payment: Payment, terms: ProPlanTerms) -> None:
    now = timezone.now()
    CreatorProfile.objects.filter(user_id=payment.payer_id).update(
        is_pro=True,
        pro_expires_at=now + timedelta(days=terms.days),
        updated_at=now,
    )


@register_grant(TipDetails)
def grant_tip(payment: Payment, terms: TipDetails) -> None:
    """Tips carry no entitlement."""


# =============================================================================
# Revoke Handlers
# =============================================================================


@register_revoke(SubscriptionTerms)
def revoke_subscription(payment: Payment, terms: SubscriptionTerms) -> None:
    """
    Take back the months ``payment`` bought.

    A subscription still funded by another confirmed payment is shortened
    by the refunded duration; otherwise it is cancelled.
    """
    if payment.subscription_id is None:
        return
    subscription = Subscription.objects.select_for_update().get(id=payment.subscription_id)
    if subscription.status != SubscriptionStatus.ACTIVE:
        return

    still_funded = (
        subscription.payments.exclude(id=payment.id)
        .filter(status=PaymentStatus.CONFIRMED)
        .exists()
    )
    if still_funded:
        subscription.expires_at -= relativedelta(months=terms.duration_months)
        subscription.save(update_fields=["expires_at", "updated_at"])
        logger.info(
            "Subscription shortened",
            extra={
                "subscription_id": str(subscription.id),
                "payment_id": str(payment.id),
                "expires_at": subscription.expires_at.isoformat(),
            },
        )
    else:
        subscription.cancel()
        subscription.save(update_fields=["status", "cancelled_at", "updated_at"])


@register_revoke(ContentUnlock, MediaItemUnlock)
def revoke_content(payment: Payment, terms: ContentUnlock | MediaItemUnlock) -> None:
    now = timezone.now()
    ContentPurchase.objects.filter(payment=payment, revoked_at__isnull=True).update(
        revoked_at=now,
        updated_at=now,
    )


@register_revoke(PackUnlock)
def revoke_pack(payment: Payment, terms: PackUnlock) -> None:
    now = timezone.now()
    PackPurchase.objects.filter(payment=payment, revoked_at__isnull=True).update(
        revoked_at=now,
        updated_at=now,
    )


@register_revoke(MessageUnlock)
def revoke_message(payment: Payment, terms: MessageUnlock) -> None:
    Message.objects.filter(id=terms.message_id, is_purchased=True).update(
        is_purchased=False,
        updated_at=timezone.now(),
    )


@register_revoke(ProPlanTerms)
def revoke_pro_plan(payment: Payment, terms: ProPlanTerms) -> None:
    CreatorProfile.objects.filter(user_id=payment.payer_id).update(
        is_pro=False,
        pro_expires_at=None,
        updated_at=timezone.now(),
    )


@register_revoke(TipDetails)
def revoke_tip(payment: Payment, terms: TipDetails) -> None:
    """Nothing to take back."""


# =============================================================================
# Entitlement Service
# =============================================================================


class EntitlementService(BaseService):
    """
    Grants, revokes and checks entitlements.

    grant() and revoke() must run inside the caller's transaction (the
    reconciliation service holds the payment row lock).
    """

    @classmethod
    def grant(cls, payment: Payment) -> None:
        """
        Grant what ``payment`` bought to its payer.

        Raises:
            InvalidPaymentMetadataError: Metadata does not match the kind
        """
        terms = payment.terms
        handler = GRANT_HANDLERS[type(terms)]
        handler(payment, terms)
        cls.get_logger().info(
            "Entitlement granted",
            extra={
                "payment_id": str(payment.id),
                "kind": payment.kind,
                "variant": type(terms).__name__,
            },
        )

    @classmethod
    def revoke(cls, payment: Payment) -> None:
        """Take back what ``payment`` granted (refund policy dependent)."""
        terms = payment.terms
        handler = REVOKE_HANDLERS[type(terms)]
        handler(payment, terms)
        cls.get_logger().info(
            "Entitlement revoked",
            extra={
                "payment_id": str(payment.id),
                "kind": payment.kind,
                "variant": type(terms).__name__,
            },
        )

    @classmethod
    def refund_revokes_entitlements(cls) -> bool:
        return getattr(settings, "REFUND_REVOKES_ENTITLEMENTS", False)

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def has_active_subscription(cls, user_id, creator_id) -> bool:
        """
        Whether ``user_id`` holds a live subscription to ``creator_id``.

        A subscription whose payments have all been refunded no longer
        counts, whatever the refund policy left in its status.
        """
        funded = Payment.objects.filter(
            subscription=OuterRef("pk"),
            status=PaymentStatus.CONFIRMED,
        )
        refunded = Payment.objects.filter(
            subscription=OuterRef("pk"),
            status=PaymentStatus.REFUNDED,
        )
        return (
            Subscription.objects.active()
            .filter(subscriber_id=user_id, creator_id=creator_id)
            .filter(Q(Exists(funded)) | ~Q(Exists(refunded)))
            .exists()
        )

    @classmethod
    def has_content_access(cls, user_id, content: Content, media_index: int | None = None) -> bool:
        """
        Whether ``user_id`` may see ``content`` (or one of its media items).

        Access is granted to the owner, to anyone for public content, to
        active subscribers for subscriber content, and to holders of an
        unrevoked, unrefunded purchase of the whole content or of the
        requested item.
        """
        if content.creator.user_id == user_id:
            return True
        if content.visibility == ContentVisibility.PUBLIC:
            return True
        if content.visibility == ContentVisibility.SUBSCRIBERS and cls.has_active_subscription(
            user_id, content.creator_id
        ):
            return True

        purchases = ContentPurchase.objects.filter(
            user_id=user_id,
            content_id=content.id,
            revoked_at__isnull=True,
        ).exclude(payment__status=PaymentStatus.REFUNDED)
        if purchases.filter(media_index__isnull=True).exists():
            return True
        if media_index is not None:
            return purchases.filter(media_index=media_index).exists()
        return False

    @classmethod
    def has_pack_access(cls, user_id, pack: MediaPack) -> bool:
        if pack.creator.user_id == user_id:
            return True
        return (
            PackPurchase.objects.filter(
                user_id=user_id,
                pack_id=pack.id,
                revoked_at__isnull=True,
            )
            .exclude(payment__status=PaymentStatus.REFUNDED)
            .exists()
        )

    @classmethod
    def has_message_access(cls, user_id, message: Message) -> bool:
        """Sender always; the conversation's user once paid (or when free)."""
        if message.sender_id == user_id:
            return True
        conversation = message.conversation
        if not conversation.has_participant(user_id):
            return False
        if not message.is_paid:
            return True
        return message.is_purchased and not cls._message_unlock_refunded(message)

    @classmethod
    def _message_unlock_refunded(cls, message: Message) -> bool:
        """True when the message was unlocked only by since-refunded payments."""
        unlocks = Payment.objects.filter(
            kind=PaymentKind.PPV,
            metadata__variant=MessageUnlock.variant,
            metadata__message_id=str(message.id),
        )
        return _only_refunded(unlocks)
