"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: UUID primary key instead of an auto-increment integer
    RevocableMixin: Marks a grant as revoked without deleting the row

Usage:
    from core.models import BaseModel
    from core.model_mixins import RevocableMixin, UUIDPrimaryKeyMixin

    class ContentPurchase(UUIDPrimaryKeyMixin, RevocableMixin, BaseModel):
        ...

    ContentPurchase.objects.filter(revoked_at__isnull=True)

Note:
    Mixins are abstract and list before BaseModel in the bases.
"""

from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use a UUID as primary key.

    Ids are non-guessable and can be handed to an external system (for
    example as a payment gateway's external reference) before any other
    column is known.

    Fields:
        id: UUIDField primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class RevocableMixin(models.Model):
    """
    Revocation support for grant-style records.

    A revoked row stays in the table as an audit trail; access checks must
    filter on ``revoked_at__isnull=True``.

    Fields:
        revoked_at: Timestamp when the grant was revoked (null while active)

    Usage:
        purchase.revoke()
        purchase.save(update_fields=["revoked_at", "updated_at"])
    """

    revoked_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When this grant was revoked (null while active)",
    )

    class Meta:
        abstract = True

    @property
    def is_revoked(self) -> bool:
        """Whether the grant has been revoked."""
        return self.revoked_at is not None

    def revoke(self) -> None:
        """
        Stamp the grant as revoked.

        Note: Does not save - caller must save after calling.
        """
        if self.revoked_at is None:
            self.revoked_at = timezone.now()
