"""
Chat models.

Only the parts of chat that take part in payments live here:

Models:
    Conversation: Direct conversation between a user and a creator
    Message: A message in a conversation, optionally carrying paid media

A message with ``ppv_price`` set hides its media until the conversation's
user pays for it; the Entitlement Grant Engine flips ``is_purchased``
when the payment is confirmed.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class Conversation(UUIDPrimaryKeyMixin, BaseModel):
    """
    A 1:1 conversation between a fan (``user``) and a creator.

    Constraints:
        - One conversation per (user, creator)
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversations",
    )
    creator = models.ForeignKey(
        "creators.CreatorProfile",
        on_delete=models.CASCADE,
        related_name="conversations",
    )

    class Meta:
        ordering = ["-updated_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "creator"],
                name="conversation_unique_user_creator",
            ),
        ]

    def __str__(self) -> str:
        return f"Conversation({self.user_id} <-> {self.creator_id})"

    def has_participant(self, user_id) -> bool:
        """True for the fan and for the creator's own user."""
        return user_id == self.user_id or user_id == self.creator.user_id


class Message(UUIDPrimaryKeyMixin, BaseModel):
    """
    A chat message.

    Fields:
        conversation: Conversation the message belongs to
        sender: User who sent it
        body: Text content
        media_key: Storage key of attached media
        ppv_price: Price in centavos to unlock the media (NULL = free)
        is_purchased: Set once the conversation's user paid for the media
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
    )
    body = models.TextField(blank=True, default="")
    media_key = models.CharField(max_length=500, blank=True, default="")
    ppv_price = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Unlock price in centavos",
    )
    is_purchased = models.BooleanField(default=False)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["conversation", "created_at"], name="chat_message_conv_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Message({self.id}, ppv={self.ppv_price})"

    @property
    def is_paid(self) -> bool:
        return bool(self.ppv_price)
