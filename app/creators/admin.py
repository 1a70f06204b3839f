from django.contrib import admin

from creators.models import CreatorProfile


@admin.register(CreatorProfile)
class CreatorProfileAdmin(admin.ModelAdmin):
    list_display = (
        "display_name",
        "user",
        "subscription_price",
        "is_pro",
        "pro_expires_at",
        "total_earnings",
        "subscriber_count",
    )
    list_filter = ("is_pro",)
    search_fields = ("display_name", "user__email")
    raw_id_fields = ("user",)
    # Counters are owned by the payment services
    readonly_fields = ("total_earnings", "subscriber_count", "created_at", "updated_at")
