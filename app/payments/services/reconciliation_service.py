"""
Reconciliation state machine.

Applies gateway outcomes to payments. Webhooks, manual polls and the
pending-payment sweep all end up in the same four transitions:

    confirm  PENDING -> CONFIRMED  (grant entitlement, credit balance)
    fail     PENDING -> FAILED
    expire   PENDING -> EXPIRED
    refund   CONFIRMED -> REFUNDED (debit balance, optionally revoke)

Concurrency:
    Each transition runs in transaction.atomic() with the payment row
    locked by select_for_update(). Payment uses ConcurrentTransitionMixin,
    so the UPDATE is also guarded by the state that was read; a lost race
    surfaces as ConcurrentTransition and is reported as a no-op.

Idempotency:
    A transition requested from a state it does not leave is a no-op that
    returns the current state. The one exception is refund of a payment
    that never got confirmed, which raises RefundNotAllowedError.

Usage:
    from payments.services import ReconciliationService

    outcome = ReconciliationService.confirm(payment.id)
    if outcome.changed:
        ...

    ReconciliationService.poll(payment.id)
    ReconciliationService.request_refund(payment.id)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from functools import partial
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from django_fsm import ConcurrentTransition

from core.services import BaseService

from payments.adapters import AsaasAdapter
from payments.exceptions import GatewayError, PaymentNotFoundError, RefundNotAllowedError
from payments.ledger.services import BalanceLedger
from payments.models import Payment
from payments.services.entitlement_service import EntitlementService
from payments.signals import payment_confirmed, payment_refunded, send_safely
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    from collections.abc import Callable


# =============================================================================
# Gateway Status Mapping
# =============================================================================

CONFIRM = "confirm"
FAIL = "fail"
EXPIRE = "expire"
REFUND = "refund"

# Charge status reported by the gateway -> transition to apply
GATEWAY_STATUS_ACTIONS: dict[str, str] = {
    "RECEIVED": CONFIRM,
    "CONFIRMED": CONFIRM,
    "RECEIVED_IN_CASH": CONFIRM,
    "OVERDUE": EXPIRE,
    "REFUNDED": REFUND,
    "DELETED": FAIL,
}


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class TransitionOutcome:
    """
    Result of a requested transition.

    Attributes:
        payment: The payment, as persisted after the call
        changed: False when the call was a no-op
    """

    payment: Payment
    changed: bool

    @property
    def status(self) -> str:
        return self.payment.status


@dataclass
class SweepResult:
    """Counters for one pending-payment sweep."""

    checked: int = 0
    changed: int = 0
    errors: int = 0
    failed_payment_ids: list[str] = field(default_factory=list)


# =============================================================================
# Reconciliation Service
# =============================================================================


class ReconciliationService(BaseService):
    """
    Applies gateway outcomes to payments.

    The webhook handlers and the poll path share these methods, so a
    payment confirmed by polling and then notified by webhook is confirmed
    exactly once.
    """

    # Gateway adapter - can be injected for testing
    _gateway_adapter: type | None = None

    @classmethod
    def get_gateway_adapter(cls) -> type:
        """Get the gateway adapter class."""
        return cls._gateway_adapter or AsaasAdapter

    @classmethod
    def set_gateway_adapter(cls, adapter: type | None) -> None:
        """Set the gateway adapter class (for testing)."""
        cls._gateway_adapter = adapter

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _get(payment_id: uuid.UUID, for_update: bool = False) -> Payment:
        queryset = Payment.objects.select_for_update() if for_update else Payment.objects
        try:
            return queryset.get(id=payment_id)
        except (Payment.DoesNotExist, ValueError):
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            )

    @classmethod
    def _run(
        cls,
        payment_id: uuid.UUID,
        action: str,
        apply: Callable[[Payment], bool],
    ) -> TransitionOutcome:
        """
        Lock the payment and run ``apply`` in one transaction.

        ``apply`` returns False when the transition does not apply to the
        current state. ConcurrentTransition from the guarded UPDATE is
        reported as a no-op.
        """
        logger = cls.get_logger()
        try:
            with transaction.atomic():
                payment = cls._get(payment_id, for_update=True)
                previous = payment.status
                changed = apply(payment)
        except ConcurrentTransition:
            payment = cls._get(payment_id)
            logger.warning(
                "Concurrent transition lost, treated as no-op",
                extra={
                    "payment_id": str(payment_id),
                    "action": action,
                    "status": payment.status,
                },
            )
            return TransitionOutcome(payment=payment, changed=False)

        if changed:
            logger.info(
                "Payment transitioned",
                extra={
                    "payment_id": str(payment.id),
                    "kind": payment.kind,
                    "action": action,
                    "from_status": previous,
                    "to_status": payment.status,
                },
            )
        else:
            logger.info(
                "Transition not applicable, no-op",
                extra={
                    "payment_id": str(payment.id),
                    "action": action,
                    "status": payment.status,
                },
            )
        return TransitionOutcome(payment=payment, changed=changed)

    # =========================================================================
    # Transitions
    # =========================================================================

    @classmethod
    def confirm(cls, payment_id: uuid.UUID) -> TransitionOutcome:
        """
        PENDING -> CONFIRMED.

        In the same transaction: grant the entitlement and credit the
        payee share. After commit: send payment_confirmed.
        """

        def apply(payment: Payment) -> bool:
            if payment.status != PaymentStatus.PENDING:
                return False
            payment.confirm()
            payment.save()

            EntitlementService.grant(payment)
            if payment.creator_id and payment.payee_share > 0:
                BalanceLedger.credit(
                    payment.creator_id,
                    payment.payee_share,
                    idempotency_key=f"credit:{payment.id}",
                    payment=payment,
                )

            transaction.on_commit(
                partial(send_safely, payment_confirmed, sender=cls, payment=payment)
            )
            return True

        return cls._run(payment_id, CONFIRM, apply)

    @classmethod
    def fail(cls, payment_id: uuid.UUID, reason: str | None = None) -> TransitionOutcome:
        """PENDING -> FAILED."""

        def apply(payment: Payment) -> bool:
            if payment.status != PaymentStatus.PENDING:
                return False
            payment.fail(reason=reason)
            payment.save()
            return True

        return cls._run(payment_id, FAIL, apply)

    @classmethod
    def expire(cls, payment_id: uuid.UUID) -> TransitionOutcome:
        """PENDING -> EXPIRED."""

        def apply(payment: Payment) -> bool:
            if payment.status != PaymentStatus.PENDING:
                return False
            payment.expire()
            payment.save()
            return True

        return cls._run(payment_id, EXPIRE, apply)

    @classmethod
    def refund(cls, payment_id: uuid.UUID) -> TransitionOutcome:
        """
        CONFIRMED -> REFUNDED.

        Debits the payee share (floored at zero) and, when
        REFUND_REVOKES_ENTITLEMENTS is on, revokes the entitlement. With
        the policy off the grant rows stay, but the access queries in
        EntitlementService skip grants backed by a refunded payment.

        Raises:
            RefundNotAllowedError: payment is not confirmed (or refunded)
        """

        def apply(payment: Payment) -> bool:
            if payment.status == PaymentStatus.REFUNDED:
                return False
            if payment.status != PaymentStatus.CONFIRMED:
                raise RefundNotAllowedError(
                    "Only confirmed payments can be refunded",
                    details={"payment_id": str(payment.id), "status": payment.status},
                )
            payment.refund()
            payment.save()

            if payment.creator_id and payment.payee_share > 0:
                BalanceLedger.debit(
                    payment.creator_id,
                    payment.payee_share,
                    idempotency_key=f"refund:{payment.id}",
                    payment=payment,
                )
            if EntitlementService.refund_revokes_entitlements():
                EntitlementService.revoke(payment)

            transaction.on_commit(
                partial(send_safely, payment_refunded, sender=cls, payment=payment)
            )
            return True

        return cls._run(payment_id, REFUND, apply)

    # =========================================================================
    # Gateway Status
    # =========================================================================

    @classmethod
    def apply_gateway_status(cls, payment: Payment, gateway_status: str) -> TransitionOutcome:
        """
        Apply a charge status reported by the gateway.

        Statuses without a mapping (PENDING, AWAITING_RISK_ANALYSIS, ...)
        leave the payment untouched.
        """
        action = GATEWAY_STATUS_ACTIONS.get((gateway_status or "").upper())
        if action is None:
            cls.get_logger().info(
                "Gateway status needs no transition",
                extra={"payment_id": str(payment.id), "gateway_status": gateway_status},
            )
            return TransitionOutcome(payment=payment, changed=False)

        if action == CONFIRM:
            return cls.confirm(payment.id)
        if action == EXPIRE:
            return cls.expire(payment.id)
        if action == REFUND:
            return cls.refund(payment.id)
        return cls.fail(payment.id, reason=f"Charge {gateway_status.lower()} at gateway")

    @classmethod
    def poll(cls, payment_id: uuid.UUID) -> TransitionOutcome:
        """
        Fetch the charge from the gateway and apply its status.

        A payment without a charge id is looked up by external reference;
        when the gateway has no charge for it, the payment is failed.

        Raises:
            PaymentNotFoundError: Unknown payment id
            GatewayError: Gateway call failed
        """
        adapter = cls.get_gateway_adapter()
        payment = cls._get(payment_id)

        if payment.is_final and payment.status != PaymentStatus.CONFIRMED:
            return TransitionOutcome(payment=payment, changed=False)

        if payment.gateway_charge_id:
            charge = adapter.get_charge(payment.gateway_charge_id)
        else:
            charge = adapter.find_charge_by_reference(str(payment.id))
            if charge is None:
                if payment.status == PaymentStatus.PENDING:
                    return cls.fail(payment.id, reason="No gateway charge for payment")
                return TransitionOutcome(payment=payment, changed=False)
            Payment.objects.filter(id=payment.id, gateway_charge_id__isnull=True).update(
                gateway_charge_id=charge.id,
                updated_at=timezone.now(),
            )

        cls.get_logger().info(
            "Polled gateway charge",
            extra={
                "payment_id": str(payment.id),
                "gateway_charge_id": charge.id,
                "gateway_status": charge.status,
            },
        )
        return cls.apply_gateway_status(payment, charge.status)

    @classmethod
    def request_refund(cls, payment_id: uuid.UUID) -> TransitionOutcome:
        """
        Refund a confirmed payment at the gateway, then locally.

        Used by the admin. A payment that is already refunded is a no-op.

        Raises:
            RefundNotAllowedError: Payment is not confirmed
            GatewayError: Gateway refused or is unavailable
        """
        payment = cls._get(payment_id)
        if payment.status == PaymentStatus.REFUNDED:
            return TransitionOutcome(payment=payment, changed=False)
        if payment.status != PaymentStatus.CONFIRMED or not payment.gateway_charge_id:
            raise RefundNotAllowedError(
                "Only confirmed payments can be refunded",
                details={"payment_id": str(payment.id), "status": payment.status},
            )

        cls.get_gateway_adapter().refund_charge(payment.gateway_charge_id)
        cls.get_logger().info(
            "Refund requested at gateway",
            extra={"payment_id": str(payment.id), "gateway_charge_id": payment.gateway_charge_id},
        )
        return cls.refund(payment.id)

    # =========================================================================
    # Sweep
    # =========================================================================

    @classmethod
    def sweep_pending(cls, older_than_minutes: int | None = None, limit: int = 200) -> SweepResult:
        """
        Poll pending payments older than ``older_than_minutes``.

        Recovers payments whose webhook never arrived. Gateway errors are
        logged per payment and counted; the sweep continues.
        """
        if older_than_minutes is None:
            older_than_minutes = settings.PENDING_PAYMENT_POLL_MINUTES
        cutoff = timezone.now() - timedelta(minutes=older_than_minutes)

        payment_ids = list(
            Payment.objects.filter(status=PaymentStatus.PENDING, created_at__lte=cutoff)
            .order_by("created_at")
            .values_list("id", flat=True)[:limit]
        )

        result = SweepResult()
        for payment_id in payment_ids:
            result.checked += 1
            try:
                outcome = cls.poll(payment_id)
            except (GatewayError, RefundNotAllowedError) as e:
                result.errors += 1
                result.failed_payment_ids.append(str(payment_id))
                cls.get_logger().warning(
                    "Poll failed during sweep",
                    extra={"payment_id": str(payment_id), "error": str(e)},
                )
                continue
            if outcome.changed:
                result.changed += 1

        cls.get_logger().info(
            "Pending payment sweep finished",
            extra={
                "checked": result.checked,
                "changed": result.changed,
                "errors": result.errors,
            },
        )
        return result
