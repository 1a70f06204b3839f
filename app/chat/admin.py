from django.contrib import admin

from chat.models import Conversation, Message


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "creator", "updated_at")
    raw_id_fields = ("user", "creator")


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "conversation", "sender", "ppv_price", "is_purchased", "created_at")
    list_filter = ("is_purchased",)
    raw_id_fields = ("conversation", "sender")
