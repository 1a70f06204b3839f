"""
Serializers for payments app.

Provides:
- Purchase request serializers (one per purchase operation)
- PaymentSerializer: Read-only payment history entry
- PaymentIntentSerializer: Pending payment plus PIX instructions
- BalanceSerializer: Creator balance and earnings
- PayoutSerializer / PayoutRequestSerializer: Creator payouts
- SubscriptionPlanSerializer / SubscriptionSerializer

All amounts are integer centavos.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rest_framework import serializers

from payments.fees import SUBSCRIPTION_MULTIPLIERS
from payments.models import Payment, Payout, Subscription

if TYPE_CHECKING:
    from payments.services import PaymentIntentResult


# =============================================================================
# Purchase Requests
# =============================================================================


class PayerDetailsSerializer(serializers.Serializer):
    """Fields shared by every purchase request."""

    tax_id = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=18,
        help_text="Payer CPF/CNPJ (digits or formatted); saved for later purchases",
    )

    def validate_tax_id(self, value: str) -> str | None:
        return value or None


class SubscriptionPurchaseSerializer(PayerDetailsSerializer):
    creator_id = serializers.UUIDField()
    duration_months = serializers.ChoiceField(
        choices=sorted(SUBSCRIPTION_MULTIPLIERS),
        default=1,
        help_text="Subscription length: 1, 3, 6 or 12 months",
    )


class PPVPurchaseSerializer(PayerDetailsSerializer):
    content_id = serializers.UUIDField()
    media_index = serializers.IntegerField(
        required=False,
        allow_null=True,
        min_value=0,
        help_text="Unlock one media item instead of the whole content",
    )


class TipSerializer(PayerDetailsSerializer):
    creator_id = serializers.UUIDField()
    amount = serializers.IntegerField(help_text="Tip amount in centavos")
    message = serializers.CharField(required=False, allow_blank=True, max_length=500)
    content_id = serializers.UUIDField(required=False, allow_null=True)

    def validate_message(self, value: str) -> str | None:
        return value or None


class ProPlanPurchaseSerializer(PayerDetailsSerializer):
    pass


class PackPurchaseSerializer(PayerDetailsSerializer):
    pack_id = serializers.UUIDField()
    message_id = serializers.UUIDField(required=False, allow_null=True)


class MessagePurchaseSerializer(PayerDetailsSerializer):
    message_id = serializers.UUIDField()


# =============================================================================
# Payments
# =============================================================================


class PaymentSerializer(serializers.ModelSerializer):
    """Read-only payment history entry."""

    total_charged = serializers.IntegerField(read_only=True)
    creator_name = serializers.CharField(source="creator.display_name", read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            "id",
            "kind",
            "status",
            "creator",
            "creator_name",
            "amount",
            "gateway_fee",
            "platform_fee",
            "payee_share",
            "total_charged",
            "description",
            "metadata",
            "pix_expires_at",
            "paid_at",
            "failed_at",
            "expired_at",
            "refunded_at",
            "created_at",
        ]
        read_only_fields = fields


class PaymentDetailSerializer(PaymentSerializer):
    """Payment plus the PIX code while it can still be paid."""

    pix_qr_payload = serializers.SerializerMethodField()
    pix_qr_image = serializers.SerializerMethodField()

    class Meta(PaymentSerializer.Meta):
        fields = PaymentSerializer.Meta.fields + ["pix_qr_payload", "pix_qr_image"]
        read_only_fields = fields

    def get_pix_qr_payload(self, obj: Payment) -> str | None:
        return None if obj.is_final else obj.pix_qr_payload

    def get_pix_qr_image(self, obj: Payment) -> str | None:
        return None if obj.is_final else obj.pix_qr_image


class PaymentIntentSerializer(serializers.Serializer):
    """Response of every purchase endpoint."""

    payment = PaymentSerializer()
    pix = serializers.DictField()

    @classmethod
    def from_result(cls, result: PaymentIntentResult) -> PaymentIntentSerializer:
        return cls({"payment": result.payment, "pix": result.instructions.to_dict()})


# =============================================================================
# Balance / Payouts
# =============================================================================


class BalanceSerializer(serializers.Serializer):
    available = serializers.IntegerField()
    pending = serializers.IntegerField()
    total_earnings = serializers.IntegerField()
    minimum_payout = serializers.IntegerField()


class PayoutSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payout
        fields = [
            "id",
            "amount",
            "status",
            "pix_key",
            "pix_key_type",
            "processed_at",
            "failed_at",
            "failure_reason",
            "created_at",
        ]
        read_only_fields = fields


class PayoutRequestSerializer(serializers.Serializer):
    amount = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="Centavos to pay out; defaults to the whole available balance",
    )


# =============================================================================
# Subscriptions
# =============================================================================


class SubscriptionPlanSerializer(serializers.Serializer):
    key = serializers.CharField()
    label = serializers.CharField()
    duration_months = serializers.IntegerField()
    price = serializers.IntegerField()
    price_per_month = serializers.IntegerField()
    discount_percent = serializers.IntegerField()


class SubscriptionSerializer(serializers.ModelSerializer):
    creator_name = serializers.CharField(source="creator.display_name", read_only=True)
    is_active = serializers.BooleanField(read_only=True)

    class Meta:
        model = Subscription
        fields = [
            "id",
            "creator",
            "creator_name",
            "status",
            "is_active",
            "price_paid",
            "duration_months",
            "starts_at",
            "expires_at",
            "cancelled_at",
        ]
        read_only_fields = fields

    def to_representation(self, instance: Subscription) -> dict[str, Any]:
        data = super().to_representation(instance)
        data["creator"] = str(instance.creator_id)
        return data
