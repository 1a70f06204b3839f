"""
Pytest fixtures for ledger tests.

Sections:
    - Creator Fixtures: Creators with and without funds
    - Payout Fixtures: Payouts to reserve balance against
"""

import uuid

import pytest

from payments.ledger.services import BalanceLedger
from payments.tests.factories import CreatorProfileFactory, PayoutFactory


# ==========================================================================
# Creator Fixtures
# ==========================================================================


@pytest.fixture
def creator(db):
    """Creator with no balance row yet."""
    return CreatorProfileFactory()


@pytest.fixture
def funded_creator(db):
    """Creator with R$ 100,00 available from one earlier credit."""
    creator = CreatorProfileFactory()
    BalanceLedger.credit(creator.id, 10000, idempotency_key=f"credit:{uuid.uuid4()}")
    return creator


# ==========================================================================
# Payout Fixtures
# ==========================================================================


@pytest.fixture
def payout(db, funded_creator):
    """Pending payout of R$ 50,00 for funded_creator."""
    return PayoutFactory(creator=funded_creator, amount=5000)
