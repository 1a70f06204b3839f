"""
Subscription model: time-boxed access to a creator's subscriber content.

Subscriptions are created and extended only by the Entitlement Grant
Engine when a subscription payment is confirmed. A subscriber has at most
one ACTIVE subscription per creator; buying again extends it.

Usage:
    from payments.models import Subscription

    sub = Subscription.objects.active().filter(subscriber=user, creator=creator).first()
    if sub:
        sub.extend(3)
        sub.save()
"""

from __future__ import annotations

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import SubscriptionStatus


class SubscriptionQuerySet(models.QuerySet):
    def active(self):
        """Subscriptions with ACTIVE status that have not lapsed yet."""
        return self.filter(
            status=SubscriptionStatus.ACTIVE,
            expires_at__gt=timezone.now(),
        )

    def lapsed(self):
        """ACTIVE subscriptions whose expiry has passed."""
        return self.filter(
            status=SubscriptionStatus.ACTIVE,
            expires_at__lte=timezone.now(),
        )


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    A subscriber's access to a creator.

    Fields:
        subscriber: User holding the subscription
        creator: Creator subscribed to
        price_paid: Amount of the payment that created or last extended it
        duration_months: Duration bought by that payment
        starts_at / expires_at: Access window
        status: pending / active / cancelled / expired
        payment: Payment that created the subscription
        cancelled_at: When the subscription was cancelled

    Constraints:
        - One ACTIVE subscription per (subscriber, creator)
    """

    subscriber = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="subscriptions",
        help_text="User holding the subscription",
    )

    creator = models.ForeignKey(
        "creators.CreatorProfile",
        on_delete=models.CASCADE,
        related_name="subscriptions",
    )

    price_paid = models.PositiveBigIntegerField(
        help_text="Price of the last payment for this subscription, in centavos",
    )

    duration_months = models.PositiveSmallIntegerField(default=1)

    starts_at = models.DateTimeField(default=timezone.now)

    expires_at = models.DateTimeField(db_index=True)

    status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.PENDING,
        db_index=True,
    )

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_subscriptions",
        help_text="Payment that created this subscription",
    )

    cancelled_at = models.DateTimeField(null=True, blank=True)

    objects = SubscriptionQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["subscriber", "status"], name="sub_subscriber_status_idx"),
            models.Index(fields=["creator", "status"], name="sub_creator_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["subscriber", "creator"],
                condition=Q(status=SubscriptionStatus.ACTIVE),
                name="subscription_one_active_per_pair",
            ),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.subscriber_id} -> {self.creator_id}, {self.status})"

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE and self.expires_at > timezone.now()

    def extend(self, months: int) -> None:
        """
        Add ``months`` calendar months to the access window.

        A lapsed subscription restarts from now instead of from its old
        expiry. Does not save.
        """
        now = timezone.now()
        base = self.expires_at if self.expires_at and self.expires_at > now else now
        self.expires_at = base + relativedelta(months=months)
        self.duration_months = months
        self.status = SubscriptionStatus.ACTIVE

    def cancel(self) -> None:
        """Does not save."""
        self.status = SubscriptionStatus.CANCELLED
        self.cancelled_at = timezone.now()
