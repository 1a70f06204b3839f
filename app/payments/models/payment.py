"""
Payment model: one charge at the PIX gateway and its accounting.

A Payment is created in PENDING state by the Payment Intent Manager,
carries the fee split computed by payments.fees, and is moved to a final
state only by the Reconciliation State Machine
(payments.services.reconciliation_service).

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentKind, PaymentStatus

    payment = Payment.objects.create(
        payer=user,
        creator=creator,
        kind=PaymentKind.TIP,
        amount=1000,
        gateway_fee=199,
        platform_fee=50,
        payee_share=950,
        metadata=TipDetails(message="Thanks!").to_metadata(),
    )

    # State transitions using django-fsm
    payment.confirm()  # pending -> confirmed
    payment.save()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import PaymentKind, PaymentStatus

if TYPE_CHECKING:
    from payments.types import PaymentTerms


class Payment(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    A payment from a user, optionally to a creator.

    ConcurrentTransitionMixin adds the state that was read to the WHERE
    clause of every UPDATE, so two workers applying different transitions
    to the same row cannot both succeed.

    State Flow:
        PENDING -> CONFIRMED -> REFUNDED
        PENDING -> FAILED
        PENDING -> EXPIRED

    Fields:
        payer: User paying
        creator: Creator receiving the payee share (NULL for pro plan)
        subscription: Subscription granted or extended by this payment
        content: Content unlocked (ppv) or tipped from
        kind: What the payment buys
        amount: Product price before fees
        gateway_fee: Flat PIX fee passed through to the payer
        platform_fee: Platform share of amount
        payee_share: Creator share of amount
        metadata: Kind-specific payload (see payments.types)
        status: Current FSM state
        gateway_charge_id: Charge id at the gateway
        pix_qr_payload / pix_qr_image / pix_expires_at: Payment instructions
        *_at timestamps: When each final state was reached
        failure_reason: Why the payment failed

    Invariants (database check constraints):
        amount = platform_fee + payee_share
        payee_share = 0 when there is no creator
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="User making the payment",
    )

    creator = models.ForeignKey(
        "creators.CreatorProfile",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="received_payments",
        help_text="Creator receiving the payee share",
    )

    subscription = models.ForeignKey(
        "payments.Subscription",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Subscription granted or extended by this payment",
    )

    content = models.ForeignKey(
        "content.Content",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Content unlocked or tipped from",
    )

    # ==========================================================================
    # Kind & Amounts (centavos)
    # ==========================================================================

    kind = models.CharField(
        max_length=20,
        choices=PaymentKind.choices,
        db_index=True,
    )

    amount = models.PositiveBigIntegerField(
        help_text="Product price before fees, in centavos",
    )

    gateway_fee = models.PositiveBigIntegerField(
        default=0,
        help_text="PIX fee passed through to the payer, in centavos",
    )

    platform_fee = models.PositiveBigIntegerField(
        default=0,
        help_text="Platform share of the product price, in centavos",
    )

    payee_share = models.PositiveBigIntegerField(
        default=0,
        help_text="Creator share of the product price, in centavos",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Kind-specific payload, read through payments.types",
    )

    description = models.CharField(
        max_length=255,
        blank=True,
        default="",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        help_text="Current state of the payment (managed by FSM)",
    )

    # ==========================================================================
    # Gateway Integration
    # ==========================================================================

    gateway_charge_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        unique=True,
        help_text="Charge id at the PIX gateway (pay_xxx)",
    )

    pix_qr_payload = models.TextField(
        blank=True,
        default="",
        help_text="PIX copy-and-paste code",
    )

    pix_qr_image = models.TextField(
        blank=True,
        default="",
        help_text="Base64 encoded QR code image",
    )

    pix_expires_at = models.DateTimeField(
        null=True,
        blank=True,
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Detailed reason if the payment failed",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["payer", "status"], name="payment_payer_status_idx"),
            models.Index(fields=["payer", "created_at"], name="payment_payer_created_idx"),
            models.Index(fields=["creator", "status"], name="payment_creator_status_idx"),
            models.Index(fields=["status", "created_at"], name="payment_status_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payment_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(amount=F("platform_fee") + F("payee_share")),
                name="payment_split_adds_up",
            ),
            models.CheckConstraint(
                condition=Q(creator__isnull=False) | Q(payee_share=0),
                name="payment_no_payee_no_share",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.kind}, {self.status}, {self.total_charged})"

    @property
    def total_charged(self) -> int:
        """What the payer is charged, in centavos."""
        return self.amount + self.gateway_fee

    @property
    def terms(self) -> PaymentTerms:
        """Typed view of ``metadata`` for this payment's kind."""
        from payments.types import parse_metadata

        return parse_metadata(self.kind, self.metadata)

    @property
    def is_final(self) -> bool:
        return self.status != PaymentStatus.PENDING

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.CONFIRMED,
    )
    def confirm(self):
        """
        Mark the payment as paid.

        Transition: PENDING -> CONFIRMED
        """
        self.paid_at = timezone.now()

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark the payment as failed.

        Transition: PENDING -> FAILED

        Args:
            reason: Optional failure reason for debugging
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    @transition(
        field=status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.EXPIRED,
    )
    def expire(self):
        """
        Mark the payment as expired (QR code overdue).

        Transition: PENDING -> EXPIRED
        """
        self.expired_at = timezone.now()

    @transition(
        field=status,
        source=PaymentStatus.CONFIRMED,
        target=PaymentStatus.REFUNDED,
    )
    def refund(self):
        """
        Mark the payment as refunded.

        Transition: CONFIRMED -> REFUNDED
        """
        self.refunded_at = timezone.now()
