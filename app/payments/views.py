"""
DRF views for payments app.

This module provides API views for:
- Purchases (subscription, PPV, tip, pro plan, pack, chat message)
- Payment history and manual polling
- Creator balance and payouts
- Subscription plans and the user's subscriptions

Related files:
    - services/: PaymentIntentService, ReconciliationService, PayoutService
    - serializers.py: Request/response serializers
    - webhooks/views.py: Gateway notification endpoint
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/subscribe/ - Subscribe to a creator
    POST /api/v1/payments/ppv/ - Unlock PPV content or one media item
    POST /api/v1/payments/tip/ - Tip a creator
    POST /api/v1/payments/pro-plan/ - Buy the creator pro plan
    POST /api/v1/payments/pack/ - Buy a media pack
    POST /api/v1/payments/message/ - Unlock a paid chat message
    GET  /api/v1/payments/ - Payer's payment history
    GET  /api/v1/payments/<id>/ - Payment detail
    POST /api/v1/payments/<id>/poll/ - Ask the gateway for the charge status
    GET  /api/v1/payments/balance/ - Creator balance and earnings
    GET/POST /api/v1/payments/payouts/ - Creator payouts
    GET  /api/v1/payments/plans/<creator_id>/ - Subscription pricing table
    GET  /api/v1/payments/subscriptions/ - User's subscriptions

Security:
    - All endpoints require authentication except the plans table
    - Application errors are rendered by core.exceptions.api_exception_handler
"""

from __future__ import annotations

import logging

from django.conf import settings
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import NotFoundError, PermissionDeniedError
from creators.models import CreatorProfile
from payments.fees import subscription_plans
from payments.ledger.services import BalanceLedger
from payments.models import Payment, Subscription
from payments.serializers import (
    BalanceSerializer,
    MessagePurchaseSerializer,
    PackPurchaseSerializer,
    PaymentDetailSerializer,
    PaymentIntentSerializer,
    PaymentSerializer,
    PayoutRequestSerializer,
    PayoutSerializer,
    PPVPurchaseSerializer,
    ProPlanPurchaseSerializer,
    SubscriptionPlanSerializer,
    SubscriptionPurchaseSerializer,
    SubscriptionSerializer,
    TipSerializer,
)
from payments.services import PaymentIntentService, PayoutService, ReconciliationService

logger = logging.getLogger(__name__)


def get_creator_profile(user) -> CreatorProfile:
    """The requesting user's creator profile, or 403."""
    try:
        return user.creator_profile
    except CreatorProfile.DoesNotExist:
        raise PermissionDeniedError(
            "Only creators can access this resource",
            error_code="NOT_A_CREATOR",
        )


# =============================================================================
# Purchases
# =============================================================================


class PurchaseView(APIView):
    """
    Base view for purchase endpoints.

    Subclasses set ``serializer_class`` and implement ``create_intent``
    with the validated data; the response is the pending payment and its
    PIX instructions.

    Response:
        201 Created: Pending payment + PIX code
        400 Bad Request: Validation error / amount out of range
        404 Not Found: Product not found
        409 Conflict: Already purchased
        502 Bad Gateway: Gateway unavailable or rejected the charge
    """

    permission_classes = [IsAuthenticated]
    serializer_class = None

    def create_intent(self, request, data: dict):
        raise NotImplementedError

    def post(self, request):
        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.create_intent(request, serializer.validated_data)

        logger.info(
            "Payment intent created",
            extra={
                "payment_id": str(result.payment.id),
                "kind": result.payment.kind,
                "user_id": str(request.user.id),
            },
        )
        return Response(
            PaymentIntentSerializer.from_result(result).data,
            status=status.HTTP_201_CREATED,
        )


class SubscriptionPurchaseView(PurchaseView):
    """POST /api/v1/payments/subscribe/"""

    serializer_class = SubscriptionPurchaseSerializer

    @extend_schema(
        operation_id="purchase_subscription",
        summary="Subscribe to a creator",
        request=SubscriptionPurchaseSerializer,
        responses={201: PaymentIntentSerializer},
        tags=["Payments - Purchases"],
    )
    def post(self, request):
        return super().post(request)

    def create_intent(self, request, data: dict):
        return PaymentIntentService.create_subscription_payment(
            payer=request.user,
            creator_id=data["creator_id"],
            duration_months=data["duration_months"],
            tax_id=data.get("tax_id"),
        )


class PPVPurchaseView(PurchaseView):
    """POST /api/v1/payments/ppv/"""

    serializer_class = PPVPurchaseSerializer

    @extend_schema(
        operation_id="purchase_ppv",
        summary="Unlock PPV content or a single media item",
        request=PPVPurchaseSerializer,
        responses={201: PaymentIntentSerializer},
        tags=["Payments - Purchases"],
    )
    def post(self, request):
        return super().post(request)

    def create_intent(self, request, data: dict):
        return PaymentIntentService.create_ppv_payment(
            payer=request.user,
            content_id=data["content_id"],
            media_index=data.get("media_index"),
            tax_id=data.get("tax_id"),
        )


class TipView(PurchaseView):
    """POST /api/v1/payments/tip/"""

    serializer_class = TipSerializer

    @extend_schema(
        operation_id="send_tip",
        summary="Tip a creator",
        request=TipSerializer,
        responses={201: PaymentIntentSerializer},
        tags=["Payments - Purchases"],
    )
    def post(self, request):
        return super().post(request)

    def create_intent(self, request, data: dict):
        return PaymentIntentService.create_tip_payment(
            payer=request.user,
            creator_id=data["creator_id"],
            amount=data["amount"],
            message=data.get("message"),
            content_id=data.get("content_id"),
            tax_id=data.get("tax_id"),
        )


class ProPlanPurchaseView(PurchaseView):
    """POST /api/v1/payments/pro-plan/"""

    serializer_class = ProPlanPurchaseSerializer

    @extend_schema(
        operation_id="purchase_pro_plan",
        summary="Buy the creator pro plan",
        request=ProPlanPurchaseSerializer,
        responses={201: PaymentIntentSerializer},
        tags=["Payments - Purchases"],
    )
    def post(self, request):
        return super().post(request)

    def create_intent(self, request, data: dict):
        return PaymentIntentService.create_pro_plan_payment(
            payer=request.user,
            tax_id=data.get("tax_id"),
        )


class PackPurchaseView(PurchaseView):
    """POST /api/v1/payments/pack/"""

    serializer_class = PackPurchaseSerializer

    @extend_schema(
        operation_id="purchase_pack",
        summary="Buy a media pack",
        request=PackPurchaseSerializer,
        responses={201: PaymentIntentSerializer},
        tags=["Payments - Purchases"],
    )
    def post(self, request):
        return super().post(request)

    def create_intent(self, request, data: dict):
        return PaymentIntentService.create_pack_payment(
            payer=request.user,
            pack_id=data["pack_id"],
            message_id=data.get("message_id"),
            tax_id=data.get("tax_id"),
        )


class MessagePurchaseView(PurchaseView):
    """POST /api/v1/payments/message/"""

    serializer_class = MessagePurchaseSerializer

    @extend_schema(
        operation_id="purchase_message",
        summary="Unlock a paid chat message",
        request=MessagePurchaseSerializer,
        responses={201: PaymentIntentSerializer},
        tags=["Payments - Purchases"],
    )
    def post(self, request):
        return super().post(request)

    def create_intent(self, request, data: dict):
        return PaymentIntentService.create_message_ppv_payment(
            payer=request.user,
            message_id=data["message_id"],
            tax_id=data.get("tax_id"),
        )


# =============================================================================
# Payment History
# =============================================================================


class PaymentListView(ListAPIView):
    """
    GET /api/v1/payments/

    Payments made by the current user, newest first. Optional filters:
    ``?status=confirmed`` and ``?kind=tip``.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = PaymentSerializer

    def get_queryset(self):
        queryset = Payment.objects.filter(payer=self.request.user).select_related("creator")
        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        kind = self.request.query_params.get("kind")
        if kind:
            queryset = queryset.filter(kind=kind)
        return queryset.order_by("-created_at")


class PaymentDetailMixin:
    def get_payment(self, request, payment_id) -> Payment:
        try:
            return Payment.objects.select_related("creator").get(
                id=payment_id,
                payer=request.user,
            )
        except Payment.DoesNotExist:
            raise NotFoundError(
                "Payment not found",
                error_code="PAYMENT_NOT_FOUND",
                details={"payment_id": str(payment_id)},
            )


class PaymentDetailView(PaymentDetailMixin, APIView):
    """GET /api/v1/payments/<payment_id>/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payment",
        summary="Payment detail",
        responses={
            200: PaymentDetailSerializer,
            404: OpenApiResponse(description="Payment not found"),
        },
        tags=["Payments - History"],
    )
    def get(self, request, payment_id):
        payment = self.get_payment(request, payment_id)
        return Response(PaymentDetailSerializer(payment).data)


class PaymentPollView(PaymentDetailMixin, APIView):
    """
    POST /api/v1/payments/<payment_id>/poll/

    Fetches the charge status from the gateway and applies it. Lets the
    client finish a purchase when the notification is late.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="poll_payment",
        summary="Refresh payment status from the gateway",
        request=None,
        responses={
            200: PaymentDetailSerializer,
            404: OpenApiResponse(description="Payment not found"),
            502: OpenApiResponse(description="Gateway unavailable"),
        },
        tags=["Payments - History"],
    )
    def post(self, request, payment_id):
        payment = self.get_payment(request, payment_id)
        outcome = ReconciliationService.poll(payment.id)
        return Response(PaymentDetailSerializer(outcome.payment).data)


# =============================================================================
# Balance & Payouts
# =============================================================================


class BalanceView(APIView):
    """GET /api/v1/payments/balance/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_balance",
        summary="Creator balance and lifetime earnings",
        responses={200: BalanceSerializer},
        tags=["Payments - Creators"],
    )
    def get(self, request):
        creator = get_creator_profile(request.user)
        snapshot = BalanceLedger.get_cached_balance(creator.id)
        data = {**snapshot.to_dict(), "minimum_payout": settings.MIN_PAYOUT_AMOUNT}
        return Response(BalanceSerializer(data).data)


class PayoutListCreateView(APIView):
    """
    GET /api/v1/payments/payouts/ - Creator payout history
    POST /api/v1/payments/payouts/ - Request a payout
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_payouts",
        summary="Creator payout history",
        responses={200: PayoutSerializer(many=True)},
        tags=["Payments - Creators"],
    )
    def get(self, request):
        creator = get_creator_profile(request.user)
        payouts = PayoutService.list_payouts(creator)
        return Response(PayoutSerializer(payouts, many=True).data)

    @extend_schema(
        operation_id="request_payout",
        summary="Request a PIX payout",
        request=PayoutRequestSerializer,
        responses={
            201: PayoutSerializer,
            400: OpenApiResponse(description="Below minimum, no PIX key or insufficient balance"),
            502: OpenApiResponse(description="Gateway unavailable"),
        },
        tags=["Payments - Creators"],
    )
    def post(self, request):
        creator = get_creator_profile(request.user)
        serializer = PayoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payout = PayoutService.request_payout(creator, amount=serializer.validated_data.get("amount"))
        BalanceLedger.invalidate_cached_balance(creator.id)
        return Response(PayoutSerializer(payout).data, status=status.HTTP_201_CREATED)


# =============================================================================
# Subscriptions
# =============================================================================


class SubscriptionPlansView(APIView):
    """
    GET /api/v1/payments/plans/<creator_id>/

    Pricing table for a creator's subscription durations.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="list_subscription_plans",
        summary="Subscription plans for a creator",
        responses={
            200: SubscriptionPlanSerializer(many=True),
            404: OpenApiResponse(description="Creator not found or subscriptions disabled"),
        },
        tags=["Payments - Subscriptions"],
    )
    def get(self, request, creator_id):
        creator = CreatorProfile.objects.filter(id=creator_id).first()
        if creator is None or not creator.subscription_price:
            raise NotFoundError(
                "Creator has no subscription plans",
                error_code="PLANS_NOT_FOUND",
                details={"creator_id": str(creator_id)},
            )

        plans = [plan.to_dict() for plan in subscription_plans(creator.subscription_price)]
        return Response(SubscriptionPlanSerializer(plans, many=True).data)


class SubscriptionListView(ListAPIView):
    """GET /api/v1/payments/subscriptions/"""

    permission_classes = [IsAuthenticated]
    serializer_class = SubscriptionSerializer

    def get_queryset(self):
        return (
            Subscription.objects.filter(subscriber=self.request.user)
            .select_related("creator")
            .order_by("-expires_at")
        )
