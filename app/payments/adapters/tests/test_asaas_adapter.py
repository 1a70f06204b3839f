"""
Tests for the Asaas adapter.

Tests cover:
- Centavo/reais conversion and PIX key detection
- Parameter validation
- HTTP error translation to domain exceptions
- Request shape and response parsing for each operation
"""

from datetime import date
from unittest.mock import patch

import pytest
import requests

from payments.adapters import (
    AsaasAdapter,
    CreateCustomerParams,
    CreatePixChargeParams,
    backoff_delay,
    centavos_to_reais,
    detect_pix_key_type,
    is_retryable_gateway_error,
    reais_to_centavos,
)
from payments.adapters.asaas_adapter import PRODUCTION_BASE_URL, SANDBOX_BASE_URL
from payments.adapters.tests.responses import error_body, make_response
from payments.exceptions import (
    GatewayAuthenticationError,
    GatewayRequestError,
    GatewayUnavailableError,
)


def sent(mock_session, index: int = -1):
    """(method, url, kwargs) of a recorded session.request call."""
    call = mock_session.request.call_args_list[index]
    return call.args[0], call.args[1], call.kwargs


# =============================================================================
# Helper Function Tests
# =============================================================================


class TestMoneyConversion:
    @pytest.mark.parametrize(
        "centavos,reais",
        [(1199, 11.99), (100, 1.0), (1, 0.01), (999999, 9999.99)],
    )
    def test_centavos_to_reais(self, centavos, reais):
        assert centavos_to_reais(centavos) == reais

    @pytest.mark.parametrize(
        "value,centavos",
        [(11.99, 1199), ("19.90", 1990), (0.1, 10), (1, 100), ("0.005", 0), ("0.015", 2)],
    )
    def test_reais_to_centavos(self, value, centavos):
        assert reais_to_centavos(value) == centavos


class TestDetectPixKeyType:
    @pytest.mark.parametrize(
        "key,expected",
        [
            ("ana@example.com", "EMAIL"),
            ("123.456.789-09", "CPF"),
            ("12345678909", "CPF"),
            ("12.345.678/0001-95", "CNPJ"),
            ("+5511987654321", "PHONE"),
            ("+55 11 98765-4321", "PHONE"),
            ("7d9f0335-8dcc-4054-9bf9-0dbd61d36906", "EVP"),
            ("anything-else", "EVP"),
        ],
    )
    def test_detects(self, key, expected):
        assert detect_pix_key_type(key) == expected


class TestRetryHelpers:
    def test_is_retryable_gateway_error(self):
        assert is_retryable_gateway_error(GatewayUnavailableError("down"))
        assert not is_retryable_gateway_error(GatewayRequestError("bad"))
        assert not is_retryable_gateway_error(ValueError("other"))

    def test_backoff_delay_grows_and_caps(self):
        assert 1.0 <= backoff_delay(0) <= 1.25
        assert 4.0 <= backoff_delay(2) <= 5.0
        assert 60.0 <= backoff_delay(20) <= 75.0


# =============================================================================
# Parameter Validation Tests
# =============================================================================


class TestParams:
    def test_charge_amount_must_be_positive(self):
        with pytest.raises(ValueError, match="amount_centavos"):
            CreatePixChargeParams(
                customer_id="cus_1", amount_centavos=0, description="x", external_reference="ref"
            )

    def test_charge_requires_reference(self):
        with pytest.raises(ValueError, match="external_reference"):
            CreatePixChargeParams(
                customer_id="cus_1", amount_centavos=1199, description="x", external_reference=""
            )

    def test_customer_requires_email(self):
        with pytest.raises(ValueError, match="email"):
            CreateCustomerParams(name="Ana", email="")

    def test_transfer_amount_must_be_positive(self, mock_session):
        with pytest.raises(ValueError):
            AsaasAdapter.create_pix_transfer(
                amount_centavos=0, pix_key="ana@example.com", pix_key_type="EMAIL", external_reference="r"
            )

        mock_session.request.assert_not_called()


# =============================================================================
# Error Translation Tests
# =============================================================================


class TestErrorTranslation:
    """HTTP failures become domain exceptions."""

    def test_bad_request(self, mock_session):
        mock_session.request.return_value = make_response(
            400, error_body("invalid_cpfCnpj", "O CPF/CNPJ informado é inválido.")
        )

        with pytest.raises(GatewayRequestError) as exc_info:
            AsaasAdapter.get_charge("pay_1")

        error = exc_info.value
        assert error.details["gateway_code"] == "invalid_cpfCnpj"
        assert error.details["status_code"] == 400
        assert "CPF/CNPJ" in error.message
        assert not error.is_retryable

    def test_unauthorized(self, mock_session):
        mock_session.request.return_value = make_response(401, {})

        with pytest.raises(GatewayAuthenticationError):
            AsaasAdapter.get_charge("pay_1")

    @pytest.mark.parametrize("status_code", [429, 500, 503])
    def test_unavailable_is_retryable(self, mock_session, status_code):
        mock_session.request.return_value = make_response(status_code)

        with pytest.raises(GatewayUnavailableError) as exc_info:
            AsaasAdapter.get_charge("pay_1")

        assert exc_info.value.is_retryable

    def test_timeout(self, mock_session):
        mock_session.request.side_effect = requests.Timeout("read timed out")

        with pytest.raises(GatewayUnavailableError) as exc_info:
            AsaasAdapter.get_charge("pay_1")

        assert exc_info.value.details["gateway_code"] == "timeout"

    def test_connection_error(self, mock_session):
        mock_session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(GatewayUnavailableError) as exc_info:
            AsaasAdapter.get_charge("pay_1")

        assert exc_info.value.details["gateway_code"] == "connection_error"

    def test_not_found_is_a_rejected_request(self, mock_session):
        mock_session.request.return_value = make_response(404, {})

        with pytest.raises(GatewayRequestError) as exc_info:
            AsaasAdapter.get_charge("pay_missing")

        assert exc_info.value.message == "Gateway returned HTTP 404"
        assert exc_info.value.details["status_code"] == 404


# =============================================================================
# Request Tests
# =============================================================================


class TestRequestShape:
    def test_sends_api_key_and_timeout(self, mock_session, settings, charge_data):
        settings.ASAAS_API_TIMEOUT_SECONDS = 7
        mock_session.request.return_value = make_response(200, charge_data)

        AsaasAdapter.get_charge("pay_080225913252")

        method, url, kwargs = sent(mock_session)
        assert method == "GET"
        assert url == f"{SANDBOX_BASE_URL}/payments/pay_080225913252"
        assert kwargs["headers"] == {"access_token": "test-asaas-key"}
        assert kwargs["timeout"] == 7

    def test_production_base_url(self, settings):
        settings.ASAAS_ENVIRONMENT = "production"

        assert AsaasAdapter.base_url() == PRODUCTION_BASE_URL


class TestCustomers:
    def test_create_customer(self, mock_session):
        mock_session.request.return_value = make_response(
            200, {"id": "cus_1", "name": "Ana", "email": "ana@example.com", "cpfCnpj": "12345678909"}
        )

        customer = AsaasAdapter.create_customer(
            CreateCustomerParams(name="Ana", email="ana@example.com", tax_id="12345678909", external_reference="u1")
        )

        method, url, kwargs = sent(mock_session)
        assert (method, url) == ("POST", f"{SANDBOX_BASE_URL}/customers")
        assert kwargs["json"]["cpfCnpj"] == "12345678909"
        assert kwargs["json"]["notificationDisabled"] is True
        assert customer.id == "cus_1"
        assert customer.tax_id == "12345678909"

    def test_find_customer_by_email(self, mock_session):
        mock_session.request.return_value = make_response(
            200, {"data": [{"id": "cus_1", "name": "Ana", "email": "ana@example.com"}], "totalCount": 1}
        )

        customer = AsaasAdapter.find_customer_by_email("ana@example.com")

        assert customer.id == "cus_1"
        assert sent(mock_session)[2]["params"] == {"email": "ana@example.com"}

    def test_find_customer_none(self, mock_session):
        mock_session.request.return_value = make_response(200, {"data": [], "totalCount": 0})

        assert AsaasAdapter.find_customer_by_email("nobody@example.com") is None

    def test_update_customer(self, mock_session):
        mock_session.request.return_value = make_response(200, {"id": "cus_1", "cpfCnpj": "12345678909"})

        AsaasAdapter.update_customer("cus_1", "12345678909")

        method, url, kwargs = sent(mock_session)
        assert (method, url) == ("PUT", f"{SANDBOX_BASE_URL}/customers/cus_1")
        assert kwargs["json"] == {"cpfCnpj": "12345678909"}


class TestCharges:
    def test_create_pix_charge_fetches_qr_code(self, mock_session, charge_data, qr_code_data):
        mock_session.request.side_effect = [
            make_response(200, charge_data),
            make_response(200, qr_code_data),
        ]

        charge = AsaasAdapter.create_pix_charge(
            CreatePixChargeParams(
                customer_id="cus_000005219613",
                amount_centavos=1199,
                description="Tip for Ana",
                external_reference=charge_data["externalReference"],
                due_date=date(2026, 10, 18),
            )
        )

        _, _, create_kwargs = sent(mock_session, 0)
        assert create_kwargs["json"]["billingType"] == "PIX"
        assert create_kwargs["json"]["value"] == 11.99
        assert create_kwargs["json"]["dueDate"] == "2026-10-18"
        assert sent(mock_session, 1)[1] == f"{SANDBOX_BASE_URL}/payments/pay_080225913252/pixQrCode"

        assert charge.id == "pay_080225913252"
        assert charge.amount_centavos == 1199
        assert charge.pix_qr_payload == qr_code_data["payload"]
        assert charge.pix_qr_image == qr_code_data["encodedImage"]
        assert charge.pix_expires_at.date() == date(2026, 10, 19)

    def test_charge_without_qr_code_is_cancelled(self, mock_session, charge_data):
        mock_session.request.side_effect = [
            make_response(200, charge_data),
            make_response(503),
            make_response(200, {"deleted": True, "id": charge_data["id"]}),
        ]

        with pytest.raises(GatewayUnavailableError):
            AsaasAdapter.create_pix_charge(
                CreatePixChargeParams(
                    customer_id="cus_000005219613",
                    amount_centavos=1199,
                    description="Tip for Ana",
                    external_reference=charge_data["externalReference"],
                )
            )

        assert sent(mock_session, 2)[:2] == ("DELETE", f"{SANDBOX_BASE_URL}/payments/{charge_data['id']}")

    def test_failed_cancel_keeps_original_error(self, mock_session, charge_data):
        mock_session.request.side_effect = [
            make_response(200, charge_data),
            make_response(503),
            requests.ConnectionError("reset"),
        ]

        with pytest.raises(GatewayUnavailableError) as exc_info:
            AsaasAdapter.create_pix_charge(
                CreatePixChargeParams(
                    customer_id="cus_000005219613",
                    amount_centavos=1199,
                    description="Tip for Ana",
                    external_reference=charge_data["externalReference"],
                )
            )

        assert exc_info.value.details["gateway_code"] == "unknown"
        assert mock_session.request.call_count == 3

    def test_find_charge_by_reference(self, mock_session, charge_data):
        mock_session.request.return_value = make_response(200, {"data": [charge_data]})

        charge = AsaasAdapter.find_charge_by_reference(charge_data["externalReference"])

        assert charge.id == charge_data["id"]
        assert sent(mock_session)[2]["params"] == {"externalReference": charge_data["externalReference"]}

    def test_find_charge_by_reference_none(self, mock_session):
        mock_session.request.return_value = make_response(200, {"data": []})

        assert AsaasAdapter.find_charge_by_reference("missing") is None

    def test_full_refund_sends_no_value(self, mock_session, charge_data):
        mock_session.request.return_value = make_response(200, {**charge_data, "status": "REFUNDED"})

        charge = AsaasAdapter.refund_charge("pay_080225913252")

        method, url, kwargs = sent(mock_session)
        assert (method, url) == ("POST", f"{SANDBOX_BASE_URL}/payments/pay_080225913252/refund")
        assert kwargs["json"] == {}
        assert charge.status == "REFUNDED"

    def test_partial_refund(self, mock_session, charge_data):
        mock_session.request.return_value = make_response(200, charge_data)

        AsaasAdapter.refund_charge("pay_080225913252", amount_centavos=500)

        assert sent(mock_session)[2]["json"] == {"value": 5.0}

    def test_cancel_charge(self, mock_session):
        mock_session.request.return_value = make_response(200, {"deleted": True, "id": "pay_1"})

        AsaasAdapter.cancel_charge("pay_1")

        assert sent(mock_session)[:2] == ("DELETE", f"{SANDBOX_BASE_URL}/payments/pay_1")


class TestTransfers:
    def test_create_pix_transfer(self, mock_session):
        mock_session.request.return_value = make_response(
            200, {"id": "tra_1", "status": "PENDING", "value": 50.0}
        )

        transfer = AsaasAdapter.create_pix_transfer(
            amount_centavos=5000,
            pix_key="ana@example.com",
            pix_key_type="EMAIL",
            external_reference="payout-1",
            description="Payout to Ana",
        )

        method, url, kwargs = sent(mock_session)
        assert (method, url) == ("POST", f"{SANDBOX_BASE_URL}/transfers")
        assert kwargs["json"]["operationType"] == "PIX"
        assert kwargs["json"]["pixAddressKey"] == "ana@example.com"
        assert kwargs["json"]["pixAddressKeyType"] == "EMAIL"
        assert kwargs["json"]["value"] == 50.0
        assert transfer.id == "tra_1"
        assert transfer.amount_centavos == 5000


class TestSession:
    def test_session_is_shared(self):
        with patch.object(AsaasAdapter, "_session", None):
            first = AsaasAdapter._get_session()
            second = AsaasAdapter._get_session()

        assert first is second
        assert first.headers["Content-Type"] == "application/json"
