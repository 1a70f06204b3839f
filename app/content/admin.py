from django.contrib import admin

from content.models import Content, ContentPurchase, MediaPack, PackPurchase


@admin.register(Content)
class ContentAdmin(admin.ModelAdmin):
    list_display = ("id", "creator", "visibility", "ppv_price", "created_at")
    list_filter = ("visibility",)
    raw_id_fields = ("creator",)


@admin.register(MediaPack)
class MediaPackAdmin(admin.ModelAdmin):
    list_display = ("name", "creator", "price", "is_active", "sales_count")
    list_filter = ("is_active",)
    raw_id_fields = ("creator",)
    readonly_fields = ("sales_count",)


@admin.register(ContentPurchase)
class ContentPurchaseAdmin(admin.ModelAdmin):
    list_display = ("user", "content", "media_index", "payment", "revoked_at", "created_at")
    raw_id_fields = ("user", "content", "payment")


@admin.register(PackPurchase)
class PackPurchaseAdmin(admin.ModelAdmin):
    list_display = ("user", "pack", "payment", "revoked_at", "created_at")
    raw_id_fields = ("user", "pack", "payment")
