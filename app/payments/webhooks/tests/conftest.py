"""
Pytest fixtures for webhook tests.

Provides WebhookEvent objects built from gateway notification bodies
(see payloads.py) and a payout waiting on a transfer notification.
"""

import pytest

from payments.state_machines import PayoutStatus
from payments.tests.factories import PayoutFactory, WebhookEventFactory


@pytest.fixture
def make_event(db):
    """Store a notification body as a WebhookEvent."""

    def _make(payload: dict):
        return WebhookEventFactory(
            event_key=payload["id"],
            event_type=payload["event"],
            payload=payload,
        )

    return _make


@pytest.fixture
def processing_payout(creator):
    """A R$ 50,00 payout waiting on gateway transfer tra_webhook."""
    return PayoutFactory(
        creator=creator,
        status=PayoutStatus.PROCESSING,
        gateway_transfer_id="tra_webhook",
    )
