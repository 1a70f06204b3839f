"""
Creator profile model.

CreatorProfile is the payee of subscriptions, PPV, tips and packs, and the
owner of the pro-plan flag. Counters on this row (total_earnings,
subscriber_count) are only ever changed with F() expressions by the
payments services.

Related files:
    - payments/ledger/services.py: credits and debits total_earnings
    - payments/services/entitlement_service.py: pro plan and subscriber count
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class PixKeyType(models.TextChoices):
    """PIX key types accepted by the gateway for transfers."""

    CPF = "CPF", "CPF"
    CNPJ = "CNPJ", "CNPJ"
    EMAIL = "EMAIL", "Email"
    PHONE = "PHONE", "Phone"
    EVP = "EVP", "Random key"


class CreatorProfile(UUIDPrimaryKeyMixin, BaseModel):
    """
    Creator (payee) profile attached to a user.

    Fields:
        user: Owning user account
        display_name: Public name shown on receipts and broadcasts
        subscription_price: Monthly price in centavos
        is_pro / pro_expires_at: Pro plan flag and its validity window
        total_earnings: Lifetime payee share credited, in centavos
        subscriber_count: Number of subscriptions ever started
        pix_key / pix_key_type: Destination for payouts
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="creator_profile",
    )
    display_name = models.CharField(max_length=100)
    subscription_price = models.PositiveIntegerField(
        default=0,
        help_text="Monthly subscription price in centavos (0 = subscriptions disabled)",
    )

    is_pro = models.BooleanField(default=False)
    pro_expires_at = models.DateTimeField(null=True, blank=True)

    total_earnings = models.PositiveBigIntegerField(
        default=0,
        help_text="Lifetime payee share in centavos (never negative)",
    )
    subscriber_count = models.PositiveIntegerField(default=0)

    pix_key = models.CharField(max_length=140, blank=True, default="")
    pix_key_type = models.CharField(
        max_length=10,
        choices=PixKeyType.choices,
        blank=True,
        default="",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Creator Profile"
        verbose_name_plural = "Creator Profiles"

    def __str__(self) -> str:
        return f"CreatorProfile({self.display_name})"

    @property
    def has_active_pro_plan(self) -> bool:
        """Whether the pro flag is set and has not lapsed."""
        if not self.is_pro:
            return False
        return self.pro_expires_at is None or self.pro_expires_at > timezone.now()
