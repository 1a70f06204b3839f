"""
Ledger - Creator balances for confirmed payments.

Tracks what the platform owes each creator. Every mutation is applied in
the database with F() expressions and journaled under a unique
idempotency key, so replays of the same credit, refund or payout are
detected and skipped.

Public API:
    Models (payments.ledger.models):
        Balance - One row per creator (available, pending)
        BalanceEntry - Append-only journal of mutations
        EntryType - Enum of journal entry types

    Service (payments.ledger.services):
        BalanceLedger - credit, debit, reserve_for_payout,
            release_payout, get_balance

    Types:
        BalanceSnapshot - Balance read result
        LedgerResult - Outcome of a mutation

    Exceptions:
        LedgerError - Base exception for ledger operations
        InsufficientBalanceError - Reservation larger than available funds
        InvalidLedgerAmountError - Non-positive mutation amount

Usage:
    from payments.ledger.services import BalanceLedger

    BalanceLedger.credit(
        creator_id=payment.creator_id,
        amount=payment.payee_share,
        idempotency_key=f"credit:{payment.id}",
        payment=payment,
    )
    print(BalanceLedger.get_balance(payment.creator_id))
"""

from .exceptions import InsufficientBalanceError, InvalidLedgerAmountError, LedgerError
from .types import BalanceSnapshot, LedgerResult

__all__ = [
    # Types
    "BalanceSnapshot",
    "LedgerResult",
    # Exceptions
    "LedgerError",
    "InsufficientBalanceError",
    "InvalidLedgerAmountError",
]
