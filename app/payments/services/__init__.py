"""
Payment services for coordinating payment operations.

This module provides:
- PaymentIntentService: Entry point for every purchase (opens PIX charges)
- ReconciliationService: Applies gateway outcomes to payments
- EntitlementService: Grants, revokes and checks entitlements
- CustomerService: Links users to gateway customers
- PayoutService: Sends creator earnings out by PIX

Usage:
    from payments.services import PaymentIntentService

    result = PaymentIntentService.create_subscription_payment(
        payer=user,
        creator_id=creator.id,
        duration_months=3,
    )

    # Apply a gateway outcome
    from payments.services import ReconciliationService

    ReconciliationService.confirm(result.payment.id)

    # Pay out a creator
    from payments.services import PayoutService

    payout = PayoutService.request_payout(creator)
"""

from payments.services.customer_service import CustomerService, normalize_tax_id
from payments.services.entitlement_service import EntitlementService
from payments.services.intent_service import (
    PaymentIntentResult,
    PaymentIntentService,
    PixInstructions,
)
from payments.services.payout_service import PayoutService
from payments.services.reconciliation_service import (
    GATEWAY_STATUS_ACTIONS,
    ReconciliationService,
    SweepResult,
    TransitionOutcome,
)

__all__ = [
    "CustomerService",
    "EntitlementService",
    "GATEWAY_STATUS_ACTIONS",
    "PaymentIntentResult",
    "PaymentIntentService",
    "PayoutService",
    "PixInstructions",
    "ReconciliationService",
    "SweepResult",
    "TransitionOutcome",
    "normalize_tax_id",
]
