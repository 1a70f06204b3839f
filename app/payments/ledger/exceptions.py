"""
Ledger-specific exceptions for creator balance operations.

Exception Hierarchy:
    LedgerError (base)
    ├── InsufficientBalanceError - Reservation larger than available funds
    └── InvalidLedgerAmountError - Non-positive mutation amount

Usage:
    from payments.ledger.exceptions import InsufficientBalanceError

    raise InsufficientBalanceError(creator_id, required=5000, available=1200)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    import uuid
    from typing import Any


class LedgerError(BaseApplicationError):
    """Base exception for all ledger operations."""

    default_error_code: str = "LEDGER_ERROR"


class InsufficientBalanceError(LedgerError):
    """
    Raised when a creator's available balance cannot cover a reservation.

    Attributes:
        creator_id: The creator whose balance was checked
        required: The amount (in centavos) that was required
        available: The amount (in centavos) that was available
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        creator_id: uuid.UUID,
        required: int,
        available: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.creator_id = creator_id
        self.required = required
        self.available = available

        message = (
            f"Creator {creator_id} has insufficient balance: "
            f"required {required}, available {available}"
        )

        full_details = {
            "creator_id": str(creator_id),
            "required": required,
            "available": available,
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=message,
            error_code=error_code,
            details=full_details,
        )


class InvalidLedgerAmountError(LedgerError):
    """Raised when a credit, debit or reservation amount is not a positive integer."""

    default_error_code: str = "INVALID_LEDGER_AMOUNT"
