"""
Payout service for sending creator earnings out by PIX.

This module provides the PayoutService class which handles the critical path
for money leaving the platform and reaching a creator's PIX key.

The service follows a two-phase pattern:
1. Phase 1: Create the PENDING payout and reserve the funds, commit
2. Phase 2: Call the gateway create_pix_transfer (outside the transaction)
3. Phase 3: Store gateway_transfer_id (PROCESSING), let webhooks finish it

If the gateway call fails the payout is failed and the reservation is
released in one transaction. TRANSFER_DONE / TRANSFER_FAILED webhooks
advance PROCESSING payouts through complete_payout / fail_payout.

Usage:
    from payments.services import PayoutService

    payout = PayoutService.request_payout(creator)            # whole balance
    payout = PayoutService.request_payout(creator, amount=5000)
"""

from __future__ import annotations

import uuid
from functools import partial
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.db.models import QuerySet

from django_fsm import ConcurrentTransition

from core.services import BaseService

from payments.adapters import AsaasAdapter, detect_pix_key_type
from payments.exceptions import (
    AmountBelowMinimumError,
    GatewayError,
    InvalidAmountError,
    PaymentNotFoundError,
    PayoutNotAllowedError,
)
from payments.ledger.services import BalanceLedger
from payments.models import Payout
from payments.signals import payout_completed, payout_failed, send_safely
from payments.state_machines import PayoutStatus

if TYPE_CHECKING:
    from creators.models import CreatorProfile


# Transfer statuses reported by the gateway
TRANSFER_DONE = "DONE"
TRANSFER_FAILED_STATUSES = ("FAILED", "CANCELLED")


class PayoutService(BaseService):
    """
    Service for paying out creator balances.

    Error Handling:
        - Validation errors (minimum, missing PIX key, balance) raise before
          anything is written
        - Gateway errors fail the payout, release the funds and re-raise

    Usage:
        payout = PayoutService.request_payout(creator, amount=5000)
        PayoutService.complete_payout(payout.id)
        PayoutService.fail_payout(payout.id, "Invalid PIX key")
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

    @staticmethod
    def _get_for_update(payout_id: uuid.UUID) -> Payout:
        try:
            return Payout.objects.select_for_update().get(id=payout_id)
        except Payout.DoesNotExist:
            raise PaymentNotFoundError(
                f"Payout {payout_id} not found",
                error_code="PAYOUT_NOT_FOUND",
                details={"payout_id": str(payout_id)},
            )

    # =========================================================================
    # Request
    # =========================================================================

    @classmethod
    def request_payout(cls, creator: CreatorProfile, amount: int | None = None) -> Payout:
        """
        Pay out ``amount`` (default: the whole available balance).

        Args:
            creator: Creator requesting the payout
            amount: Centavos to send, at least MIN_PAYOUT_AMOUNT

        Returns:
            The payout, PROCESSING (or COMPLETED if the gateway finished
            the transfer synchronously)

        Raises:
            PayoutNotAllowedError: No PIX key, or a payout is already open
            AmountBelowMinimumError: Amount below MIN_PAYOUT_AMOUNT
            InsufficientBalanceError: Available balance below amount
            GatewayError: Transfer creation failed (payout failed, funds back)
        """
        logger = cls.get_logger()
        minimum = settings.MIN_PAYOUT_AMOUNT

        if not creator.pix_key:
            raise PayoutNotAllowedError(
                "Register a PIX key before requesting a payout",
                error_code="PIX_KEY_MISSING",
            )

        if amount is None:
            amount = BalanceLedger.get_balance(creator.id).available
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(
                "Payout amount must be a positive integer",
                details={"amount": amount},
            )
        if amount < minimum:
            raise AmountBelowMinimumError(
                "Payout is below the minimum amount",
                details={"minimum": minimum, "amount": amount},
            )

        if Payout.objects.filter(
            creator=creator,
            status__in=[PayoutStatus.PENDING, PayoutStatus.PROCESSING],
        ).exists():
            raise PayoutNotAllowedError(
                "A payout is already in progress",
                error_code="PAYOUT_IN_PROGRESS",
            )

        # Phase 1: payout row and reservation commit together
        with transaction.atomic():
            payout = Payout.objects.create(
                creator=creator,
                amount=amount,
                pix_key=creator.pix_key,
                pix_key_type=creator.pix_key_type or detect_pix_key_type(creator.pix_key),
            )
            BalanceLedger.reserve_for_payout(creator.id, amount, payout)

        logger.info(
            "Payout created, calling gateway",
            extra={
                "payout_id": str(payout.id),
                "creator_id": str(creator.id),
                "amount": amount,
            },
        )

        # Phase 2: gateway call outside any transaction
        try:
            transfer = cls.get_gateway_adapter().create_pix_transfer(
                amount_centavos=amount,
                pix_key=payout.pix_key,
                pix_key_type=payout.pix_key_type,
                external_reference=str(payout.id),
                description=f"Payout to {creator.display_name}",
            )
        except GatewayError as e:
            logger.error(
                "Gateway transfer failed, releasing funds",
                extra={
                    "payout_id": str(payout.id),
                    "error_code": e.error_code,
                    "is_retryable": e.is_retryable,
                },
            )
            cls.fail_payout(payout.id, reason=f"Gateway transfer failed: {e.message}")
            raise

        # Phase 3: record the transfer id
        with transaction.atomic():
            payout = cls._get_for_update(payout.id)
            if payout.status == PayoutStatus.PENDING:
                payout.process(gateway_transfer_id=transfer.id)
                payout.save()

        if transfer.status == TRANSFER_DONE:
            cls.complete_payout(payout.id)
        elif transfer.status in TRANSFER_FAILED_STATUSES:
            cls.fail_payout(payout.id, reason=transfer.fail_reason or f"Transfer {transfer.status.lower()}")

        payout.refresh_from_db()
        return payout

    # =========================================================================
    # Completion
    # =========================================================================

    @classmethod
    def complete_payout(cls, payout_id: uuid.UUID) -> tuple[Payout, bool]:
        """
        PROCESSING -> COMPLETED.

        Returns:
            (payout, changed); changed is False when not PROCESSING
        """
        try:
            with transaction.atomic():
                payout = cls._get_for_update(payout_id)
                if payout.status != PayoutStatus.PROCESSING:
                    return payout, False
                payout.complete()
                payout.save()
                transaction.on_commit(
                    partial(send_safely, payout_completed, sender=cls, payout=payout)
                )
        except ConcurrentTransition:
            return Payout.objects.get(id=payout_id), False

        cls.get_logger().info(
            "Payout completed",
            extra={"payout_id": str(payout.id), "amount": payout.amount},
        )
        return payout, True

    @classmethod
    def fail_payout(cls, payout_id: uuid.UUID, reason: str | None = None) -> tuple[Payout, bool]:
        """
        PENDING/PROCESSING -> FAILED, returning the funds to the balance.

        Returns:
            (payout, changed); changed is False when already closed
        """
        try:
            with transaction.atomic():
                payout = cls._get_for_update(payout_id)
                if not payout.is_open:
                    return payout, False
                payout.fail(reason=reason)
                payout.save()
                BalanceLedger.release_payout(payout.creator_id, payout.amount, payout)
                transaction.on_commit(
                    partial(send_safely, payout_failed, sender=cls, payout=payout)
                )
        except ConcurrentTransition:
            return Payout.objects.get(id=payout_id), False

        cls.get_logger().warning(
            "Payout failed, funds released",
            extra={
                "payout_id": str(payout.id),
                "amount": payout.amount,
                "reason": reason,
            },
        )
        return payout, True

    # =========================================================================
    # Queries
    # =========================================================================

    @classmethod
    def find_for_transfer(
        cls,
        transfer_id: str | None,
        external_reference: str | None = None,
    ) -> Payout | None:
        """Find the payout behind a gateway transfer (by id, then by our reference)."""
        if transfer_id:
            payout = Payout.objects.filter(gateway_transfer_id=transfer_id).first()
            if payout is not None:
                return payout
        if external_reference:
            try:
                return Payout.objects.filter(id=uuid.UUID(str(external_reference))).first()
            except ValueError:
                return None
        return None

    @classmethod
    def list_payouts(cls, creator: CreatorProfile) -> QuerySet[Payout]:
        return Payout.objects.filter(creator=creator).order_by("-created_at")
