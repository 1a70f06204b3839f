"""
Payout model for PIX transfers of creator earnings.

A Payout moves funds from a creator's available balance to their PIX key.
The amount is reserved in the Balance Ledger when the payout is requested
and returned if the transfer fails.

Usage:
    from payments.models import Payout
    from payments.state_machines import PayoutStatus

    payout = Payout.objects.create(creator=creator, amount=5000, pix_key=creator.pix_key)

    payout.process("tra_123")  # pending -> processing
    payout.save()

    # TRANSFER_DONE notification
    payout.complete()  # processing -> completed
    payout.save()
"""

from __future__ import annotations

from django.db import models
from django.db.models import Q
from django.utils import timezone

from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import PayoutStatus


class Payout(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    A PIX transfer of earnings to a creator.

    State Flow:
        PENDING -> PROCESSING (transfer accepted by the gateway)
        PROCESSING -> COMPLETED (TRANSFER_DONE)
        PENDING/PROCESSING -> FAILED (gateway error, TRANSFER_FAILED/CANCELLED)

    Fields:
        creator: Creator being paid
        amount: Amount in centavos
        status: Current FSM state
        pix_key / pix_key_type: Destination copied from the profile at request time
        gateway_transfer_id: Transfer id at the gateway
        processed_at: When the transfer completed
        failed_at / failure_reason: Failure details
    """

    creator = models.ForeignKey(
        "creators.CreatorProfile",
        on_delete=models.PROTECT,
        related_name="payouts",
    )

    amount = models.PositiveBigIntegerField(
        help_text="Payout amount in centavos",
    )

    status = FSMField(
        default=PayoutStatus.PENDING,
        choices=PayoutStatus.choices,
        db_index=True,
        help_text="Current state of the payout (managed by FSM)",
    )

    pix_key = models.CharField(max_length=140, blank=True, default="")
    pix_key_type = models.CharField(max_length=10, blank=True, default="")

    gateway_transfer_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        unique=True,
        help_text="Transfer id at the PIX gateway",
    )

    processed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Detailed reason if the payout failed",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payout"
        verbose_name_plural = "Payouts"
        indexes = [
            models.Index(fields=["creator", "status"], name="payout_creator_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payout_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Payout({self.id}, {self.status}, {self.amount})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.PROCESSING,
    )
    def process(self, gateway_transfer_id: str):
        """
        Record the transfer accepted by the gateway.

        Transition: PENDING -> PROCESSING
        """
        self.gateway_transfer_id = gateway_transfer_id

    @transition(
        field=status,
        source=PayoutStatus.PROCESSING,
        target=PayoutStatus.COMPLETED,
    )
    def complete(self):
        """
        Mark payout as completed.

        Transition: PROCESSING -> COMPLETED
        """
        self.processed_at = timezone.now()

    @transition(
        field=status,
        source=[PayoutStatus.PENDING, PayoutStatus.PROCESSING],
        target=PayoutStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark payout as failed.

        Transition: PENDING/PROCESSING -> FAILED

        The caller returns the reserved funds through
        BalanceLedger.release_payout.
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @property
    def is_open(self) -> bool:
        return self.status in (PayoutStatus.PENDING, PayoutStatus.PROCESSING)
