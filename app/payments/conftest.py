"""
Pytest fixtures shared by the payments test packages.

This module provides fixtures for creating payment-related test data and a
mock gateway adapter injected into every payment service.

Usage:
    def test_confirm_grants_subscription(pending_subscription_payment, mock_gateway):
        ReconciliationService.confirm(pending_subscription_payment.id)
        ...
"""

import itertools
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from django.utils import timezone

from payments.adapters import ChargeResult, CustomerResult, TransferResult
from payments.services import (
    CustomerService,
    PaymentIntentService,
    PayoutService,
    ReconciliationService,
)
from payments.tests.factories import PaymentFactory, SubscriptionPaymentFactory


# =============================================================================
# Payment Fixtures
# =============================================================================


@pytest.fixture
def pending_tip(db, user, creator):
    """A pending R$ 10,00 tip from ``user`` to ``creator``."""
    return PaymentFactory(payer=user, creator=creator)


@pytest.fixture
def pending_subscription_payment(db, user, creator):
    """A pending one-month subscription payment."""
    return SubscriptionPaymentFactory(payer=user, creator=creator)


@pytest.fixture
def old_pending_tip(db, user, creator):
    """A pending tip created an hour ago (due for the sweep)."""
    payment = PaymentFactory(payer=user, creator=creator)
    type(payment).objects.filter(id=payment.id).update(
        created_at=timezone.now() - timedelta(hours=1)
    )
    payment.refresh_from_db()
    return payment


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def mock_gateway():
    """
    MagicMock gateway adapter injected into every payment service.

    Defaults:
        find_customer_by_email -> None (no customer to adopt)
        create_customer -> cus_test
        create_pix_charge -> a PENDING charge with QR instructions,
            one new charge id per call
        create_pix_transfer -> a PENDING transfer, one id per call

    Override any method per test, e.g.:
        mock_gateway.get_charge.return_value = ChargeResult(...)
    """
    adapter = MagicMock()
    charge_ids = itertools.count(1)
    transfer_ids = itertools.count(1)

    adapter.find_customer_by_email.return_value = None
    adapter.create_customer.return_value = CustomerResult(
        id="cus_test",
        name="Test User",
        email="user@example.com",
    )

    def create_pix_charge(params):
        return ChargeResult(
            id=f"pay_test_{next(charge_ids)}",
            status="PENDING",
            amount_centavos=params.amount_centavos,
            external_reference=params.external_reference,
            pix_qr_payload="00020126580014BR.GOV.BCB.PIX0136test",
            pix_qr_image="iVBORw0KGgo=",
            pix_expires_at=timezone.now() + timedelta(hours=1),
        )

    def create_pix_transfer(amount_centavos, pix_key, pix_key_type, external_reference, description=""):
        return TransferResult(
            id=f"tra_test_{next(transfer_ids)}",
            status="PENDING",
            amount_centavos=amount_centavos,
        )

    adapter.create_pix_charge.side_effect = create_pix_charge
    adapter.create_pix_transfer.side_effect = create_pix_transfer

    services = (CustomerService, PaymentIntentService, ReconciliationService, PayoutService)
    for service in services:
        service.set_gateway_adapter(adapter)
    try:
        yield adapter
    finally:
        for service in services:
            service.set_gateway_adapter(None)
