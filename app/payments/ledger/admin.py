"""
Django admin configuration for ledger models.

Balances and journal entries are read-only in the admin: every change
must go through BalanceLedger so that it is journaled and idempotent.
"""

from django.contrib import admin

from .models import Balance, BalanceEntry
from .types import format_brl


@admin.register(Balance)
class BalanceAdmin(admin.ModelAdmin):
    """Read-only view of creator balances."""

    list_display = [
        "creator",
        "available_display",
        "pending_display",
        "updated_at",
    ]
    search_fields = ["creator__display_name", "creator__user__email"]
    readonly_fields = ["id", "creator", "available", "pending", "created_at", "updated_at"]
    ordering = ["-updated_at"]

    def available_display(self, obj: Balance) -> str:
        return format_brl(obj.available)

    available_display.short_description = "Available"

    def pending_display(self, obj: Balance) -> str:
        return format_brl(obj.pending)

    pending_display.short_description = "Pending"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(BalanceEntry)
class BalanceEntryAdmin(admin.ModelAdmin):
    """
    Admin configuration for BalanceEntry.

    Journal entries are immutable - they cannot be added, edited or
    deleted through the admin interface.
    """

    list_display = [
        "created_at",
        "creator",
        "entry_type",
        "amount_display",
        "idempotency_key",
    ]
    list_filter = ["entry_type", "created_at"]
    search_fields = ["idempotency_key", "creator__display_name"]
    readonly_fields = [
        "id",
        "created_at",
        "creator",
        "entry_type",
        "amount",
        "payment",
        "payout",
        "idempotency_key",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def amount_display(self, obj: BalanceEntry) -> str:
        return format_brl(obj.amount)

    amount_display.short_description = "Amount"

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False
