"""
Django admin configuration for the User model.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin for email-based users, including gateway payer data."""

    list_display = (
        "email",
        "name",
        "gateway_customer_id",
        "is_active",
        "is_staff",
        "date_joined",
    )
    list_filter = ("is_active", "is_staff", "is_superuser", "date_joined")
    search_fields = ("email", "name", "gateway_customer_id")
    ordering = ("-date_joined",)
    readonly_fields = ("date_joined", "last_login", "gateway_customer_id")

    fieldsets = (
        (None, {"fields": ("email", "password", "name")}),
        ("Payer data", {"fields": ("tax_id", "gateway_customer_id")}),
        ("Status", {"fields": ("is_active", "is_staff", "is_superuser")}),
        ("Permissions", {"fields": ("groups", "user_permissions")}),
        ("Important dates", {"fields": ("date_joined", "last_login")}),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "name", "password1", "password2"),
            },
        ),
    )
