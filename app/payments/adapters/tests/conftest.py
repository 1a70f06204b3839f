"""
Pytest fixtures for Asaas adapter tests.

This module replaces the adapter's requests.Session with a mock and
provides sample gateway payloads (response builders live in responses.py).

Sections:
    - Gateway Payload Fixtures
    - Mock Session Fixtures
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from payments.adapters import AsaasAdapter


# =============================================================================
# Gateway Payload Fixtures
# =============================================================================


@pytest.fixture
def charge_data():
    """A pending PIX charge as returned by POST /payments."""
    return {
        "object": "payment",
        "id": "pay_080225913252",
        "customer": "cus_000005219613",
        "billingType": "PIX",
        "value": 11.99,
        "status": "PENDING",
        "externalReference": "2f1c7d0e-3b0a-4b8e-9a43-6f2f3f7d1a10",
    }


@pytest.fixture
def qr_code_data():
    return {
        "encodedImage": "iVBORw0KGgoAAAANSUhEUgAA",
        "payload": "00020101021226820014br.gov.bcb.pix2560qrpix.example.com",
        "expirationDate": "2026-10-19 23:59:59",
    }


# =============================================================================
# Mock Session Fixtures
# =============================================================================


@pytest.fixture
def mock_session(settings):
    """
    Replace the shared session; set ``mock_session.request.return_value``
    (or ``side_effect``) to script the gateway.
    """
    settings.ASAAS_API_KEY = "test-asaas-key"
    settings.ASAAS_ENVIRONMENT = "sandbox"
    session = MagicMock(spec=requests.Session)
    with patch.object(AsaasAdapter, "_get_session", return_value=session):
        yield session
