"""
Data types for ledger operations.

Types:
    BalanceSnapshot: Point-in-time view of a creator's balance
    LedgerResult: Outcome of a single balance mutation

Usage:
    from payments.ledger.types import BalanceSnapshot

    snapshot = BalanceLedger.get_balance(creator.id)
    print(snapshot)  # "R$ 45,00 available"
"""

from __future__ import annotations

from dataclasses import dataclass


def format_brl(centavos: int) -> str:
    """Format an integer amount of centavos as Brazilian reais ("R$ 1.234,56")."""
    sign = "-" if centavos < 0 else ""
    reais, cents = divmod(abs(centavos), 100)
    grouped = f"{reais:,}".replace(",", ".")
    return f"{sign}R$ {grouped},{cents:02d}"


@dataclass(frozen=True)
class BalanceSnapshot:
    """
    Balance of a creator at read time.

    Attributes:
        available: Funds that can be paid out, in centavos
        pending: Funds held back from payout, in centavos
        total_earnings: Lifetime earnings counter, in centavos
    """

    available: int = 0
    pending: int = 0
    total_earnings: int = 0

    def __str__(self) -> str:
        return f"{format_brl(self.available)} available"

    def to_dict(self) -> dict[str, int]:
        return {
            "available": self.available,
            "pending": self.pending,
            "total_earnings": self.total_earnings,
        }


@dataclass(frozen=True)
class LedgerResult:
    """
    Outcome of a credit or debit.

    Attributes:
        applied: False when the idempotency key was already recorded and
            the call changed nothing
        idempotency_key: Key of the journal entry
        amount: Amount requested, in centavos
    """

    applied: bool
    idempotency_key: str
    amount: int
