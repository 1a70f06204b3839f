"""
Balance Ledger service.

All balance writes go through BalanceLedger. Each mutation:

1. Inserts a BalanceEntry under a savepoint. The unique idempotency key
   turns a replay into an IntegrityError, which makes the call a no-op.
2. Applies the change with a single UPDATE using F() expressions, so no
   value is read into Python and written back.

Debits are floored at zero with GREATEST(); payout reservations use a
conditional UPDATE ... WHERE available >= amount.

Usage:
    from payments.ledger.services import BalanceLedger

    BalanceLedger.credit(creator.id, 4500, idempotency_key=f"credit:{payment.id}")
    BalanceLedger.debit(creator.id, 4500, idempotency_key=f"refund:{payment.id}")

    BalanceLedger.reserve_for_payout(creator.id, 2000, payout)
    BalanceLedger.release_payout(creator.id, 2000, payout)

    snapshot = BalanceLedger.get_balance(creator.id)
    snapshot = BalanceLedger.get_cached_balance(creator.id)  # earnings views
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.db.models import BigIntegerField, F, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from core.services import BaseService
from creators.models import CreatorProfile

from .exceptions import InsufficientBalanceError, InvalidLedgerAmountError
from .models import Balance, BalanceEntry, EntryType
from .types import BalanceSnapshot, LedgerResult

if TYPE_CHECKING:
    import uuid

    from payments.models import Payment, Payout


class BalanceLedger(BaseService):
    """
    Service class for creator balance operations.

    All methods are classmethods - no instance state is maintained.
    Every mutation opens its own transaction (a savepoint when the caller
    already holds one), so a confirmation can credit the ledger in the same
    transaction that grants the entitlement.
    """

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidLedgerAmountError(
                "Ledger amounts must be positive integers",
                details={"amount": amount},
            )

    @classmethod
    def _journal(
        cls,
        creator_id: uuid.UUID,
        entry_type: str,
        amount: int,
        idempotency_key: str,
        payment: Payment | None = None,
        payout: Payout | None = None,
    ) -> bool:
        """
        Record a journal entry. Returns False when the key already exists.
        """
        try:
            with transaction.atomic():
                BalanceEntry.objects.create(
                    creator_id=creator_id,
                    entry_type=entry_type,
                    amount=amount,
                    payment=payment,
                    payout=payout,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            cls.get_logger().info(
                "Ledger mutation already applied",
                extra={
                    "creator_id": str(creator_id),
                    "idempotency_key": idempotency_key,
                },
            )
            return False
        return True

    @staticmethod
    def _ensure_balance(creator_id: uuid.UUID) -> None:
        Balance.objects.get_or_create(creator_id=creator_id)

    # =========================================================================
    # Earnings
    # =========================================================================

    @classmethod
    def credit(
        cls,
        creator_id: uuid.UUID,
        amount: int,
        idempotency_key: str,
        payment: Payment | None = None,
        count_earnings: bool = True,
    ) -> LedgerResult:
        """
        Add ``amount`` to the creator's available balance.

        Args:
            creator_id: CreatorProfile primary key
            amount: Centavos to add (positive)
            idempotency_key: Unique key, e.g. ``credit:<payment id>``
            payment: Payment behind the credit
            count_earnings: Also add to CreatorProfile.total_earnings

        Returns:
            LedgerResult with applied=False when the key was already used
        """
        cls._validate_amount(amount)

        with transaction.atomic():
            cls._ensure_balance(creator_id)
            if not cls._journal(
                creator_id, EntryType.CREDIT, amount, idempotency_key, payment=payment
            ):
                return LedgerResult(applied=False, idempotency_key=idempotency_key, amount=amount)

            Balance.objects.filter(creator_id=creator_id).update(
                available=F("available") + amount,
                updated_at=timezone.now(),
            )
            if count_earnings:
                CreatorProfile.objects.filter(pk=creator_id).update(
                    total_earnings=F("total_earnings") + amount,
                )

        cls.get_logger().info(
            "Balance credited",
            extra={
                "creator_id": str(creator_id),
                "amount": amount,
                "idempotency_key": idempotency_key,
            },
        )
        return LedgerResult(applied=True, idempotency_key=idempotency_key, amount=amount)

    @classmethod
    def debit(
        cls,
        creator_id: uuid.UUID,
        amount: int,
        idempotency_key: str,
        payment: Payment | None = None,
        count_earnings: bool = True,
    ) -> LedgerResult:
        """
        Subtract ``amount`` from the creator's available balance, floored at 0.

        Used for refunds. The creator may already have withdrawn the funds;
        the balance then stops at zero instead of going negative.
        """
        cls._validate_amount(amount)

        with transaction.atomic():
            cls._ensure_balance(creator_id)
            if not cls._journal(
                creator_id, EntryType.DEBIT, amount, idempotency_key, payment=payment
            ):
                return LedgerResult(applied=False, idempotency_key=idempotency_key, amount=amount)

            Balance.objects.filter(creator_id=creator_id).update(
                available=Greatest(
                    F("available") - amount,
                    Value(0),
                    output_field=BigIntegerField(),
                ),
                updated_at=timezone.now(),
            )
            if count_earnings:
                CreatorProfile.objects.filter(pk=creator_id).update(
                    total_earnings=Greatest(
                        F("total_earnings") - amount,
                        Value(0),
                        output_field=BigIntegerField(),
                    ),
                )

        cls.get_logger().info(
            "Balance debited",
            extra={
                "creator_id": str(creator_id),
                "amount": amount,
                "idempotency_key": idempotency_key,
            },
        )
        return LedgerResult(applied=True, idempotency_key=idempotency_key, amount=amount)

    # =========================================================================
    # Payouts
    # =========================================================================

    @classmethod
    def reserve_for_payout(
        cls,
        creator_id: uuid.UUID,
        amount: int,
        payout: Payout,
    ) -> LedgerResult:
        """
        Take ``amount`` out of the available balance for a payout.

        Raises:
            InsufficientBalanceError: available < amount (nothing changes)
        """
        cls._validate_amount(amount)
        idempotency_key = f"payout:{payout.id}"

        with transaction.atomic():
            cls._ensure_balance(creator_id)
            if not cls._journal(
                creator_id, EntryType.PAYOUT, amount, idempotency_key, payout=payout
            ):
                return LedgerResult(applied=False, idempotency_key=idempotency_key, amount=amount)

            updated = Balance.objects.filter(
                creator_id=creator_id,
                available__gte=amount,
            ).update(
                available=F("available") - amount,
                updated_at=timezone.now(),
            )
            if not updated:
                available = (
                    Balance.objects.filter(creator_id=creator_id)
                    .values_list("available", flat=True)
                    .first()
                )
                # Raising inside the atomic block discards the journal entry.
                raise InsufficientBalanceError(
                    creator_id,
                    required=amount,
                    available=available or 0,
                )

        cls.get_logger().info(
            "Balance reserved for payout",
            extra={
                "creator_id": str(creator_id),
                "payout_id": str(payout.id),
                "amount": amount,
            },
        )
        return LedgerResult(applied=True, idempotency_key=idempotency_key, amount=amount)

    @classmethod
    def release_payout(
        cls,
        creator_id: uuid.UUID,
        amount: int,
        payout: Payout,
    ) -> LedgerResult:
        """Return a failed payout's reservation to the available balance."""
        cls._validate_amount(amount)
        idempotency_key = f"payout-reversal:{payout.id}"

        with transaction.atomic():
            cls._ensure_balance(creator_id)
            if not cls._journal(
                creator_id, EntryType.PAYOUT_REVERSAL, amount, idempotency_key, payout=payout
            ):
                return LedgerResult(applied=False, idempotency_key=idempotency_key, amount=amount)

            Balance.objects.filter(creator_id=creator_id).update(
                available=F("available") + amount,
                updated_at=timezone.now(),
            )

        cls.get_logger().info(
            "Payout reservation released",
            extra={
                "creator_id": str(creator_id),
                "payout_id": str(payout.id),
                "amount": amount,
            },
        )
        return LedgerResult(applied=True, idempotency_key=idempotency_key, amount=amount)

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def get_balance(creator_id: uuid.UUID) -> BalanceSnapshot:
        """
        Read the creator's balance and lifetime earnings.

        Creators without a Balance row (no confirmed payments yet) read as
        zero.
        """
        row = (
            Balance.objects.filter(creator_id=creator_id)
            .values("available", "pending")
            .first()
        ) or {"available": 0, "pending": 0}
        total_earnings = (
            CreatorProfile.objects.filter(pk=creator_id)
            .values_list("total_earnings", flat=True)
            .first()
        ) or 0
        return BalanceSnapshot(
            available=row["available"],
            pending=row["pending"],
            total_earnings=total_earnings,
        )

    @classmethod
    def cache_key(cls, creator_id: uuid.UUID) -> str:
        return f"creator_balance:{creator_id}"

    @classmethod
    def get_cached_balance(cls, creator_id: uuid.UUID) -> BalanceSnapshot:
        """
        get_balance() behind the cache, for the earnings views.

        Entries are dropped by invalidate_cached_balance() when a payment
        or payout touches the balance.
        """
        key = cls.cache_key(creator_id)
        data = cache.get(key)
        if data is not None:
            return BalanceSnapshot(**data)

        snapshot = cls.get_balance(creator_id)
        cache.set(key, snapshot.to_dict(), timeout=settings.BALANCE_CACHE_TIMEOUT)
        return snapshot

    @classmethod
    def invalidate_cached_balance(cls, creator_id: uuid.UUID) -> None:
        cache.delete(cls.cache_key(creator_id))
