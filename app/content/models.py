"""
Content catalogue and purchase models.

- Content: a creator post holding an ordered list of media items
- MediaPack: a bundle of media sold at a fixed price
- ContentPurchase: unlock of a whole Content (media_index NULL) or of a
  single media item (media_index set)
- PackPurchase: unlock of a MediaPack

Purchase rows are created only by the Entitlement Grant Engine
(payments.services.entitlement_service) when a payment is confirmed.

Media item shape (Content.media / MediaPack.media):
    {"key": "creators/<id>/photo.jpg", "type": "image", "ppv_price": 1500}

``ppv_price`` on an item is optional; a positive value makes that single
item purchasable on its own.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.models import BaseModel
from core.model_mixins import RevocableMixin, UUIDPrimaryKeyMixin


class ContentVisibility(models.TextChoices):
    """Who can see a Content without buying anything."""

    PUBLIC = "public", "Public"
    SUBSCRIBERS = "subscribers", "Subscribers only"
    PPV = "ppv", "Pay per view"


class Content(UUIDPrimaryKeyMixin, BaseModel):
    """
    A creator post with one or more media items.

    Fields:
        creator: Owning creator profile
        text: Caption
        visibility: public / subscribers / ppv
        ppv_price: Price in centavos to unlock the whole post (ppv only)
        media: Ordered list of media items (see module docstring)
    """

    creator = models.ForeignKey(
        "creators.CreatorProfile",
        on_delete=models.CASCADE,
        related_name="contents",
    )
    text = models.TextField(blank=True, default="")
    visibility = models.CharField(
        max_length=20,
        choices=ContentVisibility.choices,
        default=ContentVisibility.SUBSCRIBERS,
        db_index=True,
    )
    ppv_price = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Whole-content unlock price in centavos",
    )
    media = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Content"
        verbose_name_plural = "Contents"

    def __str__(self) -> str:
        return f"Content({self.id}, {self.visibility})"

    def media_item(self, index: int) -> dict | None:
        """Return the media item at ``index`` or None when out of range."""
        if index < 0 or index >= len(self.media or []):
            return None
        return self.media[index]

    def media_item_price(self, index: int) -> int:
        """PPV price of a single media item (0 when not sold separately)."""
        item = self.media_item(index)
        if not item:
            return 0
        return int(item.get("ppv_price") or 0)


class MediaPack(UUIDPrimaryKeyMixin, BaseModel):
    """
    A bundle of media sold at a fixed price.

    Fields:
        creator: Owning creator profile
        name: Pack title
        price: Price in centavos
        is_active: Only active packs can be bought
        sales_count: Number of completed purchases (F() increments only)
        media: List of media items
    """

    creator = models.ForeignKey(
        "creators.CreatorProfile",
        on_delete=models.CASCADE,
        related_name="packs",
    )
    name = models.CharField(max_length=120)
    price = models.PositiveIntegerField(help_text="Price in centavos")
    is_active = models.BooleanField(default=True)
    sales_count = models.PositiveIntegerField(default=0)
    media = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Media Pack"
        verbose_name_plural = "Media Packs"

    def __str__(self) -> str:
        return f"MediaPack({self.name})"


class ContentPurchase(UUIDPrimaryKeyMixin, RevocableMixin, BaseModel):
    """
    Unlock of a Content for one user.

    A NULL media_index unlocks the whole content; a value unlocks only that
    item. Each (user, content, media_index) combination exists at most once,
    enforced by two conditional unique constraints because NULLs never
    collide in a plain unique index.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="content_purchases",
    )
    content = models.ForeignKey(
        Content,
        on_delete=models.CASCADE,
        related_name="purchases",
    )
    media_index = models.PositiveIntegerField(null=True, blank=True)
    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="content_purchases",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Content Purchase"
        verbose_name_plural = "Content Purchases"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "content"],
                condition=Q(media_index__isnull=True),
                name="content_purchase_unique_whole",
            ),
            models.UniqueConstraint(
                fields=["user", "content", "media_index"],
                condition=Q(media_index__isnull=False),
                name="content_purchase_unique_item",
            ),
        ]

    def __str__(self) -> str:
        scope = "whole" if self.media_index is None else f"item {self.media_index}"
        return f"ContentPurchase({self.user_id}, {self.content_id}, {scope})"


class PackPurchase(UUIDPrimaryKeyMixin, RevocableMixin, BaseModel):
    """Unlock of a MediaPack for one user (unique per pair)."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="pack_purchases",
    )
    pack = models.ForeignKey(
        MediaPack,
        on_delete=models.CASCADE,
        related_name="purchases",
    )
    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pack_purchases",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Pack Purchase"
        verbose_name_plural = "Pack Purchases"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "pack"],
                name="pack_purchase_unique_user_pack",
            ),
        ]

    def __str__(self) -> str:
        return f"PackPurchase({self.user_id}, {self.pack_id})"
