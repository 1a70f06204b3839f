"""
Fee & Split Calculator.

Pure functions that turn a product price into the amounts recorded on a
Payment. All money is integer centavos (BRL).

Split model:
    total_charged = amount + gateway_fee        (what the payer pays)
    amount        = platform_fee + payee_share  (what the product costs)

The flat PIX gateway fee is passed through to the payer. The platform fee
is a percentage of the product price, rounded half-to-even; the creator
receives the rest. Pro plan payments have no payee, so the whole amount is
platform fee.

Usage:
    from payments.fees import compute_fees, subscription_price
    from payments.state_machines import PaymentKind

    price = subscription_price(monthly=1990, months=3)   # 5373
    fees = compute_fees(price, PaymentKind.SUBSCRIPTION)
    fees.total_charged  # 5572
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal

from django.conf import settings

from payments.exceptions import (
    AmountBelowMinimumError,
    InvalidAmountError,
    InvalidPaymentMetadataError,
)
from payments.state_machines import PaymentKind

# =============================================================================
# Limits (centavos)
# =============================================================================

MIN_SUBSCRIPTION_PRICE = 999
MAX_SUBSCRIPTION_PRICE = 99999
MIN_PPV_PRICE = 999
MAX_PPV_PRICE = 99999
MIN_TIP_AMOUNT = 990
MIN_PACK_PRICE = 999

KIND_MINIMUMS: dict[str, int] = {
    PaymentKind.SUBSCRIPTION.value: MIN_SUBSCRIPTION_PRICE,
    PaymentKind.PPV.value: MIN_PPV_PRICE,
    PaymentKind.TIP.value: MIN_TIP_AMOUNT,
    PaymentKind.PACK.value: MIN_PACK_PRICE,
}

KIND_MAXIMUMS: dict[str, int] = {
    PaymentKind.PPV.value: MAX_PPV_PRICE,
}

# months -> price multiplier on the monthly price
SUBSCRIPTION_MULTIPLIERS: dict[int, Decimal] = {
    1: Decimal("1.0"),
    3: Decimal("2.7"),
    6: Decimal("5.1"),
    12: Decimal("9.6"),
}

SUBSCRIPTION_PLAN_NAMES: dict[int, tuple[str, str]] = {
    1: ("monthly", "1 month"),
    3: ("quarterly", "3 months"),
    6: ("semiannual", "6 months"),
    12: ("annual", "1 year"),
}


# =============================================================================
# Types
# =============================================================================


@dataclass(frozen=True)
class FeeBreakdown:
    """
    Amounts for one payment, in centavos.

    Attributes:
        amount: Product price before fees
        gateway_fee: Flat PIX fee passed through to the payer
        platform_fee: Platform share of the product price
        payee_share: Creator share of the product price
        total_charged: What the payer is charged (amount + gateway_fee)
    """

    amount: int
    gateway_fee: int
    platform_fee: int
    payee_share: int
    total_charged: int


@dataclass(frozen=True)
class SubscriptionPlan:
    """One entry of a creator's subscription pricing table."""

    key: str
    label: str
    duration_months: int
    price: int
    price_per_month: int
    discount_percent: int

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "duration_months": self.duration_months,
            "price": self.price,
            "price_per_month": self.price_per_month,
            "discount_percent": self.discount_percent,
        }


# =============================================================================
# Helpers
# =============================================================================


def _round_half_even(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_EVEN))


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def kind_minimum(kind: str) -> int:
    """Minimum product price for a payment kind."""
    if kind == PaymentKind.PRO_PLAN:
        return settings.PRO_PLAN_PRICE
    return KIND_MINIMUMS[str(kind)]


def platform_fee_rate(kind: str) -> Decimal:
    """Platform fee as a fraction of the product price."""
    if kind == PaymentKind.PRO_PLAN:
        return Decimal("1")
    if kind == PaymentKind.TIP:
        return Decimal(str(settings.TIP_PLATFORM_FEE_PERCENT)) / 100
    return Decimal(str(settings.PLATFORM_FEE_PERCENT)) / 100


def validate_amount(base_amount, kind: str) -> None:
    """
    Check a product price against the limits of its kind.

    Raises:
        InvalidAmountError: not a positive integer, or above the kind maximum
        AmountBelowMinimumError: below the kind minimum
    """
    if kind not in PaymentKind.values:
        raise InvalidPaymentMetadataError(
            f"Unknown payment kind: {kind}",
            details={"kind": kind},
        )
    if not _is_positive_int(base_amount):
        raise InvalidAmountError(
            "Amount must be a positive integer number of centavos",
            details={"kind": kind, "amount": base_amount},
        )

    minimum = kind_minimum(kind)
    if base_amount < minimum:
        raise AmountBelowMinimumError(
            f"Amount is below the minimum for {kind}",
            details={"kind": kind, "minimum": minimum, "amount": base_amount},
        )

    maximum = KIND_MAXIMUMS.get(str(kind))
    if maximum is not None and base_amount > maximum:
        raise InvalidAmountError(
            f"Amount is above the maximum for {kind}",
            error_code="AMOUNT_ABOVE_MAXIMUM",
            details={"kind": kind, "maximum": maximum, "amount": base_amount},
        )


# =============================================================================
# Public API
# =============================================================================


def compute_fees(base_amount: int, kind: str) -> FeeBreakdown:
    """
    Split a product price into gateway fee, platform fee and payee share.

    Args:
        base_amount: Product price in centavos
        kind: A PaymentKind value

    Returns:
        FeeBreakdown with total_charged = amount + gateway_fee and
        amount = platform_fee + payee_share

    Raises:
        InvalidAmountError, AmountBelowMinimumError (see validate_amount)
    """
    validate_amount(base_amount, kind)

    gateway_fee = int(settings.GATEWAY_PIX_FEE)
    platform_fee = _round_half_even(Decimal(base_amount) * platform_fee_rate(kind))
    platform_fee = min(platform_fee, base_amount)
    payee_share = base_amount - platform_fee

    return FeeBreakdown(
        amount=base_amount,
        gateway_fee=gateway_fee,
        platform_fee=platform_fee,
        payee_share=payee_share,
        total_charged=base_amount + gateway_fee,
    )


def validate_monthly_price(monthly: int) -> None:
    """A creator's monthly subscription price must lie in 999..99999."""
    if not _is_positive_int(monthly):
        raise InvalidAmountError(
            "Subscription price must be a positive integer number of centavos",
            details={"monthly_price": monthly},
        )
    if monthly < MIN_SUBSCRIPTION_PRICE:
        raise AmountBelowMinimumError(
            "Subscription price is below the minimum",
            details={"minimum": MIN_SUBSCRIPTION_PRICE, "amount": monthly},
        )
    if monthly > MAX_SUBSCRIPTION_PRICE:
        raise InvalidAmountError(
            "Subscription price is above the maximum",
            error_code="AMOUNT_ABOVE_MAXIMUM",
            details={"maximum": MAX_SUBSCRIPTION_PRICE, "amount": monthly},
        )


def subscription_price(monthly: int, months: int) -> int:
    """
    Price of a subscription lasting ``months`` months.

    Longer durations are discounted: 3 months 10%, 6 months 15%,
    12 months 20%.
    """
    validate_monthly_price(monthly)
    multiplier = SUBSCRIPTION_MULTIPLIERS.get(months)
    if multiplier is None:
        raise InvalidPaymentMetadataError(
            "Unsupported subscription duration",
            details={"duration_months": months, "allowed": sorted(SUBSCRIPTION_MULTIPLIERS)},
        )
    return _round_half_even(Decimal(monthly) * multiplier)


def subscription_plans(monthly: int) -> list[SubscriptionPlan]:
    """Pricing table for every supported subscription duration."""
    plans = []
    for months, multiplier in SUBSCRIPTION_MULTIPLIERS.items():
        price = subscription_price(monthly, months)
        key, label = SUBSCRIPTION_PLAN_NAMES[months]
        discount = _round_half_even((Decimal(months) - multiplier) / Decimal(months) * 100)
        plans.append(
            SubscriptionPlan(
                key=key,
                label=label,
                duration_months=months,
                price=price,
                price_per_month=_round_half_even(Decimal(price) / Decimal(months)),
                discount_percent=discount,
            )
        )
    return plans
