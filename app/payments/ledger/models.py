"""
Ledger models for creator balances.

This module defines the models backing the Balance Ledger:
- Balance: One row per creator with the amounts available for payout
- BalanceEntry: Append-only journal of every balance mutation

Balances are mutated only through payments.ledger.services.BalanceLedger,
which applies every change as an F() expression in the database and
records a BalanceEntry with a unique idempotency key so that a replayed
mutation is detected and skipped.

Usage:
    from payments.ledger.models import Balance, BalanceEntry, EntryType

    balance = Balance.objects.get(creator=creator)
    entries = BalanceEntry.objects.filter(creator=creator, entry_type=EntryType.CREDIT)
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin


class EntryType(models.TextChoices):
    """
    Types of balance journal entries.

    Values:
        CREDIT: Payee share of a confirmed payment
        DEBIT: Payee share reversed by a refund
        PAYOUT: Funds reserved for an outgoing PIX transfer
        PAYOUT_REVERSAL: Funds returned after a failed transfer
    """

    CREDIT = "credit", "Credit"
    DEBIT = "debit", "Debit"
    PAYOUT = "payout", "Payout"
    PAYOUT_REVERSAL = "payout_reversal", "Payout Reversal"


class Balance(UUIDPrimaryKeyMixin, BaseModel):
    """
    Creator balance.

    Fields:
        creator: Creator profile owning the balance (one row per creator)
        available: Centavos available for payout
        pending: Centavos held back from payout (reserved for future holds)

    Constraints:
        - One balance per creator
        - Amounts never go negative
    """

    creator = models.OneToOneField(
        "creators.CreatorProfile",
        on_delete=models.PROTECT,
        related_name="balance",
        help_text="Creator owning this balance",
    )
    available = models.BigIntegerField(
        default=0,
        help_text="Centavos available for payout",
    )
    pending = models.BigIntegerField(
        default=0,
        help_text="Centavos held back from payout",
    )

    class Meta:
        verbose_name = "Balance"
        verbose_name_plural = "Balances"
        constraints = [
            models.CheckConstraint(
                condition=Q(available__gte=0),
                name="balance_available_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(pending__gte=0),
                name="balance_pending_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Balance({self.creator_id}, available={self.available})"


class BalanceEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    A journal row recording one balance mutation.

    Entries are immutable once created. The idempotency key follows the
    ``<operation>:<object id>`` convention:

        credit:<payment id>
        refund:<payment id>
        payout:<payout id>
        payout-reversal:<payout id>

    Fields:
        creator: Creator whose balance changed
        entry_type: credit / debit / payout / payout_reversal
        amount: Requested amount in centavos (always positive)
        payment: Payment behind a credit or debit
        payout: Payout behind a reservation or reversal
        idempotency_key: Unique key preventing a second application
        created_at: When the mutation was applied
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this entry was recorded",
    )
    creator = models.ForeignKey(
        "creators.CreatorProfile",
        on_delete=models.PROTECT,
        related_name="balance_entries",
    )
    entry_type = models.CharField(
        max_length=30,
        choices=EntryType.choices,
    )
    amount = models.PositiveBigIntegerField(
        help_text="Amount in centavos (always positive)",
    )
    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="balance_entries",
    )
    payout = models.ForeignKey(
        "payments.Payout",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="balance_entries",
    )
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique key to prevent duplicate entries",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Balance Entry"
        verbose_name_plural = "Balance Entries"
        indexes = [
            models.Index(fields=["creator", "created_at"], name="balance_entry_creator_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="balance_entry_amount_positive",
            )
        ]

    def __str__(self) -> str:
        return f"{self.get_entry_type_display()}: {self.amount} ({self.idempotency_key})"
