"""
Payment intent manager.

Entry point for every purchase. Each create_* method validates the purchase
against the catalogue and the payer's existing entitlements, then opens a
PIX charge for it.

Flow (_open_charge):
    1. All preconditions are checked before anything is written
    2. The payer is linked to a gateway customer
    3. A PENDING Payment with its fee split and typed metadata is inserted
    4. The PIX charge is created with externalReference = payment.id
    5. Charge id and QR instructions are stored on the payment

If the gateway refuses or cannot be reached in step 4 the payment is moved
to FAILED and the gateway error is re-raised. A payment never carries a
partial set of gateway identifiers.

Usage:
    from payments.services import PaymentIntentService

    result = PaymentIntentService.create_tip_payment(
        payer=request.user,
        creator_id=creator.id,
        amount=2000,
        message="Great stream!",
    )
    result.instructions.qr_payload   # PIX copy-and-paste code
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction

from chat.models import Message
from content.models import Content, ContentPurchase, ContentVisibility, MediaPack
from core.services import BaseService
from creators.models import CreatorProfile

from payments.adapters import AsaasAdapter, CreatePixChargeParams
from payments.exceptions import (
    DuplicatePurchaseError,
    GatewayError,
    NotPurchasableError,
    ProductNotFoundError,
)
from payments.fees import SUBSCRIPTION_PLAN_NAMES, compute_fees, subscription_price
from payments.models import Payment
from payments.services.customer_service import CustomerService
from payments.services.entitlement_service import EntitlementService
from payments.state_machines import PaymentStatus
from payments.types import (
    ContentUnlock,
    MediaItemUnlock,
    MessageUnlock,
    PackUnlock,
    ProPlanTerms,
    SubscriptionTerms,
    TipDetails,
    kind_for,
)

if TYPE_CHECKING:
    from authentication.models import User
    from payments.types import PaymentTerms


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class PixInstructions:
    """
    What the payer needs to pay.

    Attributes:
        qr_payload: PIX copy-and-paste code
        qr_image: Base64 PNG of the QR code
        expires_at: When the QR code stops being payable
        total_charged: Amount shown to the payer, in centavos
    """

    qr_payload: str
    qr_image: str
    expires_at: datetime | None
    total_charged: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "qr_payload": self.qr_payload,
            "qr_image": self.qr_image,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "total_charged": self.total_charged,
        }


@dataclass
class PaymentIntentResult:
    """A pending payment and its payment instructions."""

    payment: Payment
    instructions: PixInstructions


# =============================================================================
# Payment Intent Service
# =============================================================================


class PaymentIntentService(BaseService):
    """
    Creates pending payments and their gateway charges.

    Every method raises before any mutation when the purchase is not
    allowed:
        ProductNotFoundError: creator / content / pack / message missing
        NotPurchasableError: product exists but cannot be bought by payer
        DuplicatePurchaseError: payer already holds the entitlement
        AmountBelowMinimumError / InvalidAmountError: price out of range

    and raises a GatewayError subclass when the charge cannot be created.
    """

    # Gateway adapter - can be injected for testing
    _gateway_adapter: type | None = None

    @classmethod
    def get_gateway_adapter(cls) -> type:
        """Get the gateway adapter class."""
        return cls._gateway_adapter or AsaasAdapter

    @classmethod
    def set_gateway_adapter(cls, adapter: type | None) -> None:
        """Set the gateway adapter class (for testing)."""
        cls._gateway_adapter = adapter

    # =========================================================================
    # Lookups
    # =========================================================================

    @staticmethod
    def _get_creator(creator_id: uuid.UUID) -> CreatorProfile:
        try:
            return CreatorProfile.objects.select_related("user").get(id=creator_id)
        except (CreatorProfile.DoesNotExist, ValueError, TypeError):
            raise ProductNotFoundError(
                "Creator not found",
                error_code="CREATOR_NOT_FOUND",
                details={"creator_id": str(creator_id)},
            )

    @staticmethod
    def _get_content(content_id: uuid.UUID) -> Content:
        try:
            return Content.objects.select_related("creator").get(id=content_id)
        except (Content.DoesNotExist, ValueError, TypeError):
            raise ProductNotFoundError(
                "Content not found",
                error_code="CONTENT_NOT_FOUND",
                details={"content_id": str(content_id)},
            )

    @staticmethod
    def _ensure_not_self(payer: User, creator: CreatorProfile) -> None:
        if creator.user_id == payer.id:
            raise NotPurchasableError(
                "You cannot pay yourself",
                error_code="SELF_PAYMENT",
                details={"creator_id": str(creator.id)},
            )

    # =========================================================================
    # Purchase Operations
    # =========================================================================

    @classmethod
    def create_subscription_payment(
        cls,
        payer: User,
        creator_id: uuid.UUID,
        duration_months: int = 1,
        tax_id: str | None = None,
    ) -> PaymentIntentResult:
        """Subscribe to a creator for 1, 3, 6 or 12 months."""
        creator = cls._get_creator(creator_id)
        cls._ensure_not_self(payer, creator)

        if not creator.subscription_price:
            raise NotPurchasableError(
                "This creator does not offer subscriptions",
                error_code="SUBSCRIPTIONS_DISABLED",
                details={"creator_id": str(creator.id)},
            )

        if EntitlementService.has_active_subscription(payer.id, creator.id):
            raise DuplicatePurchaseError(
                "You already have an active subscription to this creator",
                error_code="ALREADY_SUBSCRIBED",
                details={"creator_id": str(creator.id)},
            )

        terms = SubscriptionTerms(duration_months=duration_months)
        price = subscription_price(creator.subscription_price, duration_months)
        _, label = SUBSCRIPTION_PLAN_NAMES[duration_months]

        return cls._open_charge(
            payer=payer,
            base_amount=price,
            terms=terms,
            description=f"Subscription to {creator.display_name} ({label})",
            creator=creator,
            tax_id=tax_id,
        )

    @classmethod
    def create_ppv_payment(
        cls,
        payer: User,
        content_id: uuid.UUID,
        media_index: int | None = None,
        tax_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Unlock PPV content, either whole or a single media item.

        A media item can be bought on its own only when it has its own
        ppv_price and the payer does not already own the whole content.
        """
        content = cls._get_content(content_id)
        if content.creator.user_id == payer.id:
            raise NotPurchasableError(
                "You cannot buy your own content",
                error_code="SELF_PAYMENT",
                details={"content_id": str(content.id)},
            )

        owned = ContentPurchase.objects.filter(
            user_id=payer.id,
            content_id=content.id,
            revoked_at__isnull=True,
        ).exclude(payment__status=PaymentStatus.REFUNDED)
        owns_whole = owned.filter(media_index__isnull=True).exists()

        terms: PaymentTerms
        if media_index is not None:
            if content.media_item(media_index) is None:
                raise NotPurchasableError(
                    "Media item not found",
                    error_code="MEDIA_ITEM_NOT_FOUND",
                    details={"content_id": str(content.id), "media_index": media_index},
                )
            price = content.media_item_price(media_index)
            if price <= 0:
                raise NotPurchasableError(
                    "This media item is not sold separately",
                    error_code="MEDIA_ITEM_NOT_PPV",
                    details={"content_id": str(content.id), "media_index": media_index},
                )
            if owns_whole or owned.filter(media_index=media_index).exists():
                raise DuplicatePurchaseError(
                    "You already unlocked this media item",
                    error_code="ALREADY_PURCHASED",
                    details={"content_id": str(content.id), "media_index": media_index},
                )
            terms = MediaItemUnlock(content_id=content.id, media_index=media_index)
            description = f"Unlock media item {media_index + 1}"
        else:
            if content.visibility != ContentVisibility.PPV or not content.ppv_price:
                raise NotPurchasableError(
                    "This content is not pay-per-view",
                    error_code="CONTENT_NOT_PPV",
                    details={"content_id": str(content.id)},
                )
            if owns_whole:
                raise DuplicatePurchaseError(
                    "You already unlocked this content",
                    error_code="ALREADY_PURCHASED",
                    details={"content_id": str(content.id)},
                )
            price = content.ppv_price
            terms = ContentUnlock(content_id=content.id)
            description = "Unlock content"

        return cls._open_charge(
            payer=payer,
            base_amount=price,
            terms=terms,
            description=description,
            creator=content.creator,
            content=content,
            tax_id=tax_id,
        )

    @classmethod
    def create_tip_payment(
        cls,
        payer: User,
        creator_id: uuid.UUID,
        amount: int,
        message: str | None = None,
        content_id: uuid.UUID | None = None,
        tax_id: str | None = None,
    ) -> PaymentIntentResult:
        """Send a tip, optionally attached to a piece of content."""
        creator = cls._get_creator(creator_id)
        cls._ensure_not_self(payer, creator)

        content = None
        if content_id is not None:
            content = cls._get_content(content_id)
            if content.creator_id != creator.id:
                raise NotPurchasableError(
                    "Content does not belong to this creator",
                    error_code="CONTENT_CREATOR_MISMATCH",
                    details={"content_id": str(content.id), "creator_id": str(creator.id)},
                )

        terms = TipDetails(message=message or None, content_id=content.id if content else None)

        return cls._open_charge(
            payer=payer,
            base_amount=amount,
            terms=terms,
            description=f"Tip for {creator.display_name}",
            creator=creator,
            content=content,
            tax_id=tax_id,
        )

    @classmethod
    def create_pro_plan_payment(
        cls,
        payer: User,
        tax_id: str | None = None,
    ) -> PaymentIntentResult:
        """Upgrade the payer's own creator profile to the pro plan."""
        creator = CreatorProfile.objects.filter(user_id=payer.id).first()
        if creator is None:
            raise NotPurchasableError(
                "Only creators can buy the pro plan",
                error_code="NOT_A_CREATOR",
            )
        if creator.has_active_pro_plan:
            raise DuplicatePurchaseError(
                "Your pro plan is already active",
                error_code="ALREADY_PRO",
                details={"pro_expires_at": creator.pro_expires_at.isoformat() if creator.pro_expires_at else None},
            )

        days = settings.PRO_PLAN_DAYS
        return cls._open_charge(
            payer=payer,
            base_amount=settings.PRO_PLAN_PRICE,
            terms=ProPlanTerms(days=days),
            description=f"Pro plan ({days} days)",
            creator=None,
            tax_id=tax_id,
        )

    @classmethod
    def create_pack_payment(
        cls,
        payer: User,
        pack_id: uuid.UUID,
        message_id: uuid.UUID | None = None,
        tax_id: str | None = None,
    ) -> PaymentIntentResult:
        """Buy a media pack, optionally offered in a chat message."""
        try:
            pack = MediaPack.objects.select_related("creator").get(id=pack_id)
        except (MediaPack.DoesNotExist, ValueError, TypeError):
            raise ProductNotFoundError(
                "Media pack not found",
                error_code="PACK_NOT_FOUND",
                details={"pack_id": str(pack_id)},
            )

        if not pack.is_active:
            raise NotPurchasableError(
                "This pack is no longer available",
                error_code="PACK_INACTIVE",
                details={"pack_id": str(pack.id)},
            )

        if pack.creator.user_id == payer.id:
            raise NotPurchasableError(
                "You cannot buy your own pack",
                error_code="SELF_PAYMENT",
                details={"pack_id": str(pack.id)},
            )

        if EntitlementService.has_pack_access(payer.id, pack):
            raise DuplicatePurchaseError(
                "You already bought this pack",
                error_code="ALREADY_PURCHASED",
                details={"pack_id": str(pack.id)},
            )

        return cls._open_charge(
            payer=payer,
            base_amount=pack.price,
            terms=PackUnlock(pack_id=pack.id, message_id=message_id),
            description=f"Media pack: {pack.name}",
            creator=pack.creator,
            tax_id=tax_id,
        )

    @classmethod
    def create_message_ppv_payment(
        cls,
        payer: User,
        message_id: uuid.UUID,
        tax_id: str | None = None,
    ) -> PaymentIntentResult:
        """Unlock the paid media attached to a chat message."""
        try:
            message = Message.objects.select_related("conversation__creator").get(id=message_id)
        except (Message.DoesNotExist, ValueError, TypeError):
            raise ProductNotFoundError(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"message_id": str(message_id)},
            )

        if not message.ppv_price:
            raise NotPurchasableError(
                "This message has no paid media",
                error_code="MESSAGE_NOT_PPV",
                details={"message_id": str(message.id)},
            )
        if message.conversation.user_id != payer.id:
            raise NotPurchasableError(
                "Only the conversation's recipient can unlock this message",
                error_code="NOT_MESSAGE_RECIPIENT",
                details={"message_id": str(message.id)},
            )
        if EntitlementService.has_message_access(payer.id, message):
            raise DuplicatePurchaseError(
                "You already unlocked this message",
                error_code="ALREADY_PURCHASED",
                details={"message_id": str(message.id)},
            )

        return cls._open_charge(
            payer=payer,
            base_amount=message.ppv_price,
            terms=MessageUnlock(message_id=message.id),
            description="Unlock message",
            creator=message.conversation.creator,
            tax_id=tax_id,
        )

    # =========================================================================
    # Common Flow
    # =========================================================================

    @classmethod
    def _open_charge(
        cls,
        payer: User,
        base_amount: int,
        terms: PaymentTerms,
        description: str,
        creator: CreatorProfile | None = None,
        content: Content | None = None,
        tax_id: str | None = None,
    ) -> PaymentIntentResult:
        """
        Create the pending payment and its PIX charge.

        Raises:
            AmountBelowMinimumError / InvalidAmountError: price out of range
            GatewayError: customer or charge creation failed
        """
        logger = cls.get_logger()
        adapter = cls.get_gateway_adapter()
        kind = kind_for(terms)

        fees = compute_fees(base_amount, kind)
        customer_id = CustomerService.ensure_customer(payer, tax_id)

        with transaction.atomic():
            payment = Payment.objects.create(
                payer=payer,
                creator=creator,
                content=content,
                kind=kind,
                amount=fees.amount,
                gateway_fee=fees.gateway_fee,
                platform_fee=fees.platform_fee,
                payee_share=fees.payee_share,
                metadata=terms.to_metadata(),
                description=description,
                status=PaymentStatus.PENDING,
            )

        logger.info(
            "Pending payment created",
            extra={
                "payment_id": str(payment.id),
                "kind": kind,
                "amount": fees.amount,
                "total_charged": fees.total_charged,
            },
        )

        try:
            charge = adapter.create_pix_charge(
                CreatePixChargeParams(
                    customer_id=customer_id,
                    amount_centavos=fees.total_charged,
                    description=description,
                    external_reference=str(payment.id),
                )
            )
        except GatewayError as e:
            payment.fail(reason=f"Gateway charge failed: {e.message}")
            payment.save()
            logger.warning(
                "Gateway charge failed, payment marked failed",
                extra={
                    "payment_id": str(payment.id),
                    "error_code": e.error_code,
                    "is_retryable": e.is_retryable,
                },
            )
            raise

        payment.gateway_charge_id = charge.id
        payment.pix_qr_payload = charge.pix_qr_payload
        payment.pix_qr_image = charge.pix_qr_image
        payment.pix_expires_at = charge.pix_expires_at
        payment.save(
            update_fields=[
                "gateway_charge_id",
                "pix_qr_payload",
                "pix_qr_image",
                "pix_expires_at",
                "updated_at",
            ]
        )

        logger.info(
            "PIX charge opened",
            extra={
                "payment_id": str(payment.id),
                "kind": kind,
                "gateway_charge_id": charge.id,
            },
        )

        return PaymentIntentResult(
            payment=payment,
            instructions=PixInstructions(
                qr_payload=charge.pix_qr_payload,
                qr_image=charge.pix_qr_image,
                expires_at=charge.pix_expires_at,
                total_charged=fees.total_charged,
            ),
        )
