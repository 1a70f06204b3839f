"""
URL configuration for the payments app.

Routes:
    - POST subscribe/, ppv/, tip/, pro-plan/, pack/, message/ - Purchases
    - GET  / - Payment history
    - GET  <payment_id>/ - Payment detail
    - POST <payment_id>/poll/ - Refresh status from the gateway
    - GET  balance/ - Creator balance
    - GET/POST payouts/ - Creator payouts
    - GET  plans/<creator_id>/ - Subscription pricing table
    - GET  subscriptions/ - User's subscriptions
    - POST webhooks/asaas/ - Gateway webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import gateway_webhook

app_name = "payments"

urlpatterns = [
    # Purchases
    path("subscribe/", views.SubscriptionPurchaseView.as_view(), name="subscribe"),
    path("ppv/", views.PPVPurchaseView.as_view(), name="ppv"),
    path("tip/", views.TipView.as_view(), name="tip"),
    path("pro-plan/", views.ProPlanPurchaseView.as_view(), name="pro_plan"),
    path("pack/", views.PackPurchaseView.as_view(), name="pack"),
    path("message/", views.MessagePurchaseView.as_view(), name="message"),
    # Creators
    path("balance/", views.BalanceView.as_view(), name="balance"),
    path("payouts/", views.PayoutListCreateView.as_view(), name="payouts"),
    # Subscriptions
    path("plans/<uuid:creator_id>/", views.SubscriptionPlansView.as_view(), name="plans"),
    path("subscriptions/", views.SubscriptionListView.as_view(), name="subscriptions"),
    # Webhook endpoints
    path("webhooks/asaas/", gateway_webhook, name="gateway_webhook"),
    # History
    path("", views.PaymentListView.as_view(), name="payment_list"),
    path("<uuid:payment_id>/", views.PaymentDetailView.as_view(), name="payment_detail"),
    path("<uuid:payment_id>/poll/", views.PaymentPollView.as_view(), name="payment_poll"),
]
