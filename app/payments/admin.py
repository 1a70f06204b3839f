"""
Payment admin configuration.

This file imports admin configurations from the ledger submodule
and registers payment domain models with the Django admin.

Status fields are read-only: state changes go through the service layer,
either from the webhook pipeline or from the admin actions below.
"""

from django.contrib import admin, messages

from payments.exceptions import PaymentError
from payments.ledger.admin import BalanceAdmin, BalanceEntryAdmin
from payments.ledger.types import format_brl
from payments.models import Payment, Payout, Subscription, WebhookEvent
from payments.services import ReconciliationService
from payments.state_machines import WebhookEventStatus

__all__ = [
    "BalanceAdmin",
    "BalanceEntryAdmin",
    "PaymentAdmin",
    "PayoutAdmin",
    "SubscriptionAdmin",
    "WebhookEventAdmin",
]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Payments are never deleted. Refunds and polls are issued through the
    actions so that the gateway, the balance and the entitlements stay in
    step.
    """

    list_display = [
        "id",
        "payer",
        "creator",
        "kind",
        "amount_display",
        "status",
        "created_at",
    ]
    list_filter = ["status", "kind", "created_at"]
    search_fields = ["id", "gateway_charge_id", "payer__email", "creator__display_name"]
    readonly_fields = [
        "id",
        "payer",
        "creator",
        "subscription",
        "content",
        "kind",
        "amount",
        "gateway_fee",
        "platform_fee",
        "payee_share",
        "metadata",
        "description",
        "status",
        "gateway_charge_id",
        "pix_expires_at",
        "paid_at",
        "failed_at",
        "expired_at",
        "refunded_at",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["refund_at_gateway", "poll_gateway"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "payer", "creator", "kind", "description", "status"),
            },
        ),
        (
            "Amounts",
            {
                "fields": ("amount", "gateway_fee", "platform_fee", "payee_share"),
            },
        ),
        (
            "Gateway",
            {
                "fields": ("gateway_charge_id", "pix_expires_at", "failure_reason"),
            },
        ),
        (
            "References",
            {
                "fields": ("subscription", "content", "metadata"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": (
                    "paid_at",
                    "failed_at",
                    "expired_at",
                    "refunded_at",
                    "created_at",
                    "updated_at",
                ),
            },
        ),
    )

    def amount_display(self, obj: Payment) -> str:
        return format_brl(obj.total_charged)

    amount_display.short_description = "Charged"

    @admin.action(description="Refund selected payments at the gateway")
    def refund_at_gateway(self, request, queryset):
        """Refund confirmed payments at the gateway, then locally."""
        refunded = 0
        for payment in queryset:
            try:
                outcome = ReconciliationService.request_refund(payment.id)
            except PaymentError as e:
                self.message_user(
                    request,
                    f"Payment {payment.id}: {e.message}",
                    level=messages.ERROR,
                )
                continue
            if outcome.changed:
                refunded += 1
        self.message_user(request, f"Refunded {refunded} payments.")

    @admin.action(description="Poll the gateway for selected payments")
    def poll_gateway(self, request, queryset):
        changed = 0
        for payment in queryset:
            try:
                outcome = ReconciliationService.poll(payment.id)
            except PaymentError as e:
                self.message_user(
                    request,
                    f"Payment {payment.id}: {e.message}",
                    level=messages.ERROR,
                )
                continue
            if outcome.changed:
                changed += 1
        self.message_user(request, f"Polled {queryset.count()} payments, {changed} changed.")

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payments (audit trail)."""
        return False


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "subscriber",
        "creator",
        "status",
        "duration_months",
        "expires_at",
    ]
    list_filter = ["status", "duration_months"]
    search_fields = ["id", "subscriber__email", "creator__display_name"]
    readonly_fields = ["id", "payment", "created_at", "updated_at"]
    ordering = ["-created_at"]


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payout.

    Payout status is driven by the gateway's transfer notifications.
    """

    list_display = [
        "id",
        "creator",
        "amount_display",
        "status",
        "gateway_transfer_id",
        "created_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["id", "gateway_transfer_id", "creator__display_name"]
    readonly_fields = [
        "id",
        "creator",
        "amount",
        "status",
        "pix_key",
        "pix_key_type",
        "gateway_transfer_id",
        "processed_at",
        "failed_at",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def amount_display(self, obj: Payout) -> str:
        return format_brl(obj.amount)

    amount_display.short_description = "Amount"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into gateway notifications and their processing
    status. The retry action re-queues failed events.
    """

    list_display = [
        "event_key",
        "event_type",
        "status",
        "retry_count",
        "created_at",
        "processed_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["event_key", "event_type"]
    readonly_fields = [
        "id",
        "event_key",
        "event_type",
        "payload",
        "status",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
    actions = ["retry_events"]

    @admin.action(description="Re-queue selected events")
    def retry_events(self, request, queryset):
        from payments.tasks import process_webhook_event

        count = 0
        for event in queryset.exclude(status=WebhookEventStatus.PROCESSED):
            process_webhook_event.delay(str(event.id))
            count += 1
        self.message_user(request, f"Queued {count} events for processing.")

    def has_add_permission(self, request) -> bool:
        return False
