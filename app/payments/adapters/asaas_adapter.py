"""
Asaas API adapter for PIX payment operations.

This module provides the AsaasAdapter class which encapsulates all
gateway API interactions. All gateway calls should go through this
adapter to ensure consistent error handling, timeouts and observability.

Features:
- Configurable timeouts on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Centavo <-> reais conversion at the boundary (the gateway speaks reais)
- Thread-safe for use from Celery workers

Configuration (via settings):
- ASAAS_API_KEY: Gateway API key (sent in the access_token header)
- ASAAS_ENVIRONMENT: "sandbox" or "production"
- ASAAS_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payments.adapters import AsaasAdapter, CreatePixChargeParams

    # Create a PIX charge with its QR code
    charge = AsaasAdapter.create_pix_charge(
        CreatePixChargeParams(
            customer_id="cus_000005219613",
            amount_centavos=1198,
            description="Subscription to Ana (1 month)",
            external_reference=str(payment.id),
        )
    )

    # Refund a received charge
    AsaasAdapter.refund_charge(charge.id)
"""

from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import TYPE_CHECKING, Any

import requests
from django.conf import settings
from django.utils import timezone

from payments.exceptions import (
    GatewayAuthenticationError,
    GatewayError,
    GatewayRequestError,
    GatewayUnavailableError,
)

if TYPE_CHECKING:
    from datetime import date


SANDBOX_BASE_URL = "https://sandbox.asaas.com/api/v3"
PRODUCTION_BASE_URL = "https://www.asaas.com/api/v3"

EMAIL_KEY_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
EVP_KEY_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)


# =============================================================================
# Money Conversion
# =============================================================================


def centavos_to_reais(centavos: int) -> float:
    """Convert integer centavos to the decimal reais value the API expects."""
    return float(Decimal(centavos) / 100)


def reais_to_centavos(value: Any) -> int:
    """Convert an API reais value (number or string) to integer centavos."""
    return int((Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_EVEN))


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateCustomerParams:
    """
    Parameters for creating a gateway customer.

    Attributes:
        name: Payer name shown on the charge
        email: Payer email (also used to find existing customers)
        tax_id: CPF/CNPJ digits, optional at creation time
        external_reference: Our user id
    """

    name: str
    email: str
    tax_id: str | None = None
    external_reference: str | None = None

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not self.name:
            raise ValueError("name is required")
        if not self.email:
            raise ValueError("email is required")


@dataclass
class CustomerResult:
    """Customer record returned by the gateway."""

    id: str
    name: str
    email: str
    tax_id: str | None = None
    external_reference: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class CreatePixChargeParams:
    """
    Parameters for creating a PIX charge.

    Attributes:
        customer_id: Gateway customer id (cus_xxx)
        amount_centavos: Total the payer pays, fees included
        description: Text shown to the payer
        external_reference: Our payment id, used for matching
        due_date: Charge due date (default: today)
    """

    customer_id: str
    amount_centavos: int
    description: str
    external_reference: str
    due_date: date | None = None

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.amount_centavos <= 0:
            raise ValueError("amount_centavos must be positive")
        if not self.customer_id:
            raise ValueError("customer_id is required")
        if not self.external_reference:
            raise ValueError("external_reference is required")


@dataclass
class ChargeResult:
    """
    Result from charge operations.

    Attributes:
        id: Charge id (pay_xxx)
        status: Gateway status (PENDING, RECEIVED, CONFIRMED, OVERDUE, ...)
        amount_centavos: Charged value
        external_reference: Our payment id echoed back
        pix_qr_payload: PIX copy-and-paste code (only after QR fetch)
        pix_qr_image: Base64 PNG of the QR code (only after QR fetch)
        pix_expires_at: QR code expiry (only after QR fetch)
        raw_response: Full API response (for debugging)
    """

    id: str
    status: str
    amount_centavos: int
    external_reference: str | None = None
    pix_qr_payload: str = ""
    pix_qr_image: str = ""
    pix_expires_at: datetime | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class PixQrCodeResult:
    """PIX QR code for a pending charge."""

    payload: str
    encoded_image: str
    expires_at: datetime | None = None


@dataclass
class TransferResult:
    """
    Result from PIX transfer operations.

    Attributes:
        id: Transfer id
        status: PENDING, BANK_PROCESSING, DONE, CANCELLED or FAILED
        amount_centavos: Transferred value
        fail_reason: Gateway failure reason, when any
        raw_response: Full API response
    """

    id: str
    status: str
    amount_centavos: int
    fail_reason: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Retry Logic Helpers
# =============================================================================


def is_retryable_gateway_error(error: Exception) -> bool:
    """
    Check if a gateway error is retryable.

    Use this in Celery tasks to decide whether to retry:

        @shared_task(bind=True, max_retries=3)
        def poll_payment(self, payment_id):
            try:
                ReconciliationService.poll(payment_id)
            except Exception as e:
                if is_retryable_gateway_error(e):
                    raise self.retry(exc=e, countdown=backoff_delay(self.request.retries))
                raise
    """
    if isinstance(error, GatewayError):
        return getattr(error, "is_retryable", False)
    return False


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)

    Example:
        # Attempt 0: 1.0 - 1.25 seconds
        # Attempt 2: 4.0 - 5.0 seconds
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


def detect_pix_key_type(pix_key: str) -> str:
    """
    Guess the PIX key type from its format.

    Email and UUID-shaped random keys are recognized by format. Otherwise
    the digit count decides: 11 is a CPF (unless written with a leading
    "+"), 14 a CNPJ, 10-13 a phone number. Anything else is treated as a
    random (EVP) key.
    """
    key = pix_key.strip()
    if EMAIL_KEY_RE.fullmatch(key):
        return "EMAIL"
    if EVP_KEY_RE.fullmatch(key):
        return "EVP"

    digits = re.sub(r"\D", "", key)
    if len(digits) == 11 and not key.startswith("+"):
        return "CPF"
    if len(digits) == 14:
        return "CNPJ"
    if 10 <= len(digits) <= 13:
        return "PHONE"
    return "EVP"


# =============================================================================
# Asaas Adapter
# =============================================================================


class AsaasAdapter:
    """
    Adapter for Asaas API operations.

    All methods are classmethods - no instance state is maintained apart
    from a shared requests.Session (connection pooling).
    Thread-safe for use from Celery workers.

    Usage:
        customer = AsaasAdapter.find_customer_by_email("fan@example.com")
        charge = AsaasAdapter.create_pix_charge(params)
        charge = AsaasAdapter.get_charge("pay_123")
    """

    _session: requests.Session | None = None

    # =========================================================================
    # Configuration
    # =========================================================================

    @classmethod
    def base_url(cls) -> str:
        """Return the API base URL for the configured environment."""
        if getattr(settings, "ASAAS_ENVIRONMENT", "sandbox") == "production":
            return PRODUCTION_BASE_URL
        return SANDBOX_BASE_URL

    @classmethod
    def _get_session(cls) -> requests.Session:
        if cls._session is None:
            session = requests.Session()
            session.headers.update(
                {
                    "Content-Type": "application/json",
                    "User-Agent": "payments-ledger",
                }
            )
            cls._session = session
        return cls._session

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _request(
        cls,
        method: str,
        path: str,
        operation: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        log_context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Perform one API call with timing logs and error translation.

        Raises:
            GatewayRequestError: 4xx response
            GatewayAuthenticationError: 401 response
            GatewayUnavailableError: connection error, timeout, 429 or 5xx
        """
        logger = cls.get_logger()
        log_context = {"operation": operation, **(log_context or {})}
        timeout = getattr(settings, "ASAAS_API_TIMEOUT_SECONDS", 10)

        start_time = time.time()
        logger.info("Starting gateway operation", extra=log_context)

        try:
            response = cls._get_session().request(
                method,
                f"{cls.base_url()}{path}",
                json=payload,
                params=params,
                headers={"access_token": settings.ASAAS_API_KEY},
                timeout=timeout,
            )
        except requests.Timeout as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Gateway request timed out",
                extra={**log_context, "duration_ms": duration_ms},
            )
            raise GatewayUnavailableError(
                "Payment gateway timed out. Please retry.",
                gateway_code="timeout",
            ) from e
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Connection error to gateway",
                extra={**log_context, "duration_ms": duration_ms},
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Could not connect to the payment gateway. Please retry.",
                gateway_code="connection_error",
            ) from e

        duration_ms = (time.time() - start_time) * 1000

        if not response.ok:
            cls._handle_error_response(response, log_context, duration_ms)

        body = cls._parse_body(response)
        logger.info(
            "Gateway operation completed",
            extra={
                **log_context,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return body

    @staticmethod
    def _parse_body(response: requests.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"data": body}

    @classmethod
    def _handle_error_response(
        cls,
        response: requests.Response,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate a non-2xx response to a domain exception.

        The gateway reports errors as {"errors": [{"code", "description"}]}.
        """
        logger = cls.get_logger()
        status_code = response.status_code
        errors = cls._parse_body(response).get("errors") or []
        if errors and isinstance(errors, list):
            gateway_code = str(errors[0].get("code") or "unknown")
            message = ", ".join(str(e.get("description", "")) for e in errors) or "Gateway error"
        else:
            gateway_code = "unknown"
            message = f"Gateway returned HTTP {status_code}"

        log_context = {
            **log_context,
            "status_code": status_code,
            "gateway_code": gateway_code,
            "duration_ms": duration_ms,
        }

        if status_code == 401:
            logger.critical("Gateway authentication failed - check API key", extra=log_context)
            raise GatewayAuthenticationError(
                "Payment gateway authentication failed",
                gateway_code=gateway_code,
                status_code=status_code,
            )

        if status_code == 429 or status_code >= 500:
            logger.error("Gateway unavailable", extra=log_context)
            raise GatewayUnavailableError(
                "Payment gateway unavailable. Please retry.",
                gateway_code=gateway_code,
                status_code=status_code,
            )

        logger.warning("Gateway rejected request", extra=log_context)
        raise GatewayRequestError(
            message,
            gateway_code=gateway_code,
            status_code=status_code,
        )

    @staticmethod
    def _parse_datetime(value: str | None) -> datetime | None:
        if not value:
            return None
        for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"):
            try:
                parsed = datetime.strptime(value, fmt)
            except ValueError:
                continue
            return timezone.make_aware(parsed, timezone.get_default_timezone())
        return None

    # =========================================================================
    # Customers
    # =========================================================================

    @classmethod
    def _customer_result(cls, data: dict[str, Any]) -> CustomerResult:
        return CustomerResult(
            id=data["id"],
            name=data.get("name", ""),
            email=data.get("email", ""),
            tax_id=data.get("cpfCnpj") or None,
            external_reference=data.get("externalReference"),
            raw_response=data,
        )

    @classmethod
    def create_customer(cls, params: CreateCustomerParams) -> CustomerResult:
        """
        Create a gateway customer with gateway notifications disabled.

        Raises:
            GatewayRequestError: Invalid customer data (e.g. tax id)
            GatewayUnavailableError: Gateway unreachable
        """
        data = cls._request(
            "POST",
            "/customers",
            operation="create_customer",
            payload={
                "name": params.name,
                "email": params.email,
                "cpfCnpj": params.tax_id,
                "externalReference": params.external_reference,
                "notificationDisabled": True,
            },
            log_context={"external_reference": params.external_reference},
        )
        return cls._customer_result(data)

    @classmethod
    def find_customer_by_email(cls, email: str) -> CustomerResult | None:
        """Return the first customer registered with this email, or None."""
        data = cls._request(
            "GET",
            "/customers",
            operation="find_customer_by_email",
            params={"email": email},
        )
        matches = data.get("data") or []
        if not matches:
            return None
        return cls._customer_result(matches[0])

    @classmethod
    def update_customer(cls, customer_id: str, tax_id: str) -> CustomerResult:
        """Update the customer's CPF/CNPJ."""
        data = cls._request(
            "PUT",
            f"/customers/{customer_id}",
            operation="update_customer",
            payload={"cpfCnpj": tax_id},
            log_context={"customer_id": customer_id},
        )
        return cls._customer_result(data)

    # =========================================================================
    # Charges
    # =========================================================================

    @classmethod
    def _charge_result(cls, data: dict[str, Any]) -> ChargeResult:
        return ChargeResult(
            id=data["id"],
            status=data.get("status", ""),
            amount_centavos=reais_to_centavos(data.get("value", 0)),
            external_reference=data.get("externalReference"),
            raw_response=data,
        )

    @classmethod
    def create_pix_charge(cls, params: CreatePixChargeParams) -> ChargeResult:
        """
        Create a PIX charge and fetch its QR code.

        The charge is created with billingType PIX and our payment id as
        externalReference. The QR code fetch is part of the same logical
        operation: a charge without instructions is useless to the payer,
        so it is deleted again when the QR code cannot be fetched.

        Raises:
            GatewayRequestError: Charge rejected (invalid customer, value)
            GatewayUnavailableError: Gateway unreachable
        """
        due_date = params.due_date or timezone.localdate()
        data = cls._request(
            "POST",
            "/payments",
            operation="create_pix_charge",
            payload={
                "customer": params.customer_id,
                "billingType": "PIX",
                "value": centavos_to_reais(params.amount_centavos),
                "dueDate": due_date.isoformat(),
                "description": params.description,
                "externalReference": params.external_reference,
            },
            log_context={
                "external_reference": params.external_reference,
                "amount_centavos": params.amount_centavos,
            },
        )
        charge = cls._charge_result(data)

        try:
            qr_code = cls.get_pix_qr_code(charge.id)
        except GatewayError:
            cls._cancel_orphaned_charge(charge.id)
            raise
        charge.pix_qr_payload = qr_code.payload
        charge.pix_qr_image = qr_code.encoded_image
        charge.pix_expires_at = qr_code.expires_at
        return charge

    @classmethod
    def _cancel_orphaned_charge(cls, charge_id: str) -> None:
        """Delete a charge whose QR code could not be fetched."""
        try:
            cls.cancel_charge(charge_id)
        except GatewayError:
            cls.get_logger().exception(
                "Could not cancel charge without QR code",
                extra={"charge_id": charge_id},
            )

    @classmethod
    def get_pix_qr_code(cls, charge_id: str) -> PixQrCodeResult:
        """Fetch the PIX QR code (payload and base64 image) for a charge."""
        data = cls._request(
            "GET",
            f"/payments/{charge_id}/pixQrCode",
            operation="get_pix_qr_code",
            log_context={"charge_id": charge_id},
        )
        return PixQrCodeResult(
            payload=data.get("payload", ""),
            encoded_image=data.get("encodedImage", ""),
            expires_at=cls._parse_datetime(data.get("expirationDate")),
        )

    @classmethod
    def get_charge(cls, charge_id: str) -> ChargeResult:
        """Fetch the current state of a charge."""
        data = cls._request(
            "GET",
            f"/payments/{charge_id}",
            operation="get_charge",
            log_context={"charge_id": charge_id},
        )
        return cls._charge_result(data)

    @classmethod
    def find_charge_by_reference(cls, external_reference: str) -> ChargeResult | None:
        """Find a charge by our payment id, or None."""
        data = cls._request(
            "GET",
            "/payments",
            operation="find_charge_by_reference",
            params={"externalReference": external_reference},
        )
        matches = data.get("data") or []
        if not matches:
            return None
        return cls._charge_result(matches[0])

    @classmethod
    def refund_charge(cls, charge_id: str, amount_centavos: int | None = None) -> ChargeResult:
        """
        Refund a received charge, fully or partially.

        Raises:
            GatewayRequestError: Charge not refundable in its current status
        """
        payload: dict[str, Any] = {}
        if amount_centavos:
            payload["value"] = centavos_to_reais(amount_centavos)
        data = cls._request(
            "POST",
            f"/payments/{charge_id}/refund",
            operation="refund_charge",
            payload=payload,
            log_context={"charge_id": charge_id, "amount_centavos": amount_centavos},
        )
        return cls._charge_result(data)

    @classmethod
    def cancel_charge(cls, charge_id: str) -> None:
        """Delete a pending charge at the gateway."""
        cls._request(
            "DELETE",
            f"/payments/{charge_id}",
            operation="cancel_charge",
            log_context={"charge_id": charge_id},
        )

    # =========================================================================
    # Transfers
    # =========================================================================

    @classmethod
    def _transfer_result(cls, data: dict[str, Any]) -> TransferResult:
        return TransferResult(
            id=data["id"],
            status=data.get("status", ""),
            amount_centavos=reais_to_centavos(data.get("value", 0)),
            fail_reason=data.get("failReason"),
            raw_response=data,
        )

    @classmethod
    def create_pix_transfer(
        cls,
        amount_centavos: int,
        pix_key: str,
        pix_key_type: str,
        external_reference: str,
        description: str = "",
    ) -> TransferResult:
        """
        Send a PIX transfer from the platform account to a PIX key.

        Raises:
            GatewayRequestError: Invalid key or insufficient platform balance
            GatewayUnavailableError: Gateway unreachable
        """
        if amount_centavos <= 0:
            raise ValueError("amount_centavos must be positive")
        data = cls._request(
            "POST",
            "/transfers",
            operation="create_pix_transfer",
            payload={
                "value": centavos_to_reais(amount_centavos),
                "operationType": "PIX",
                "pixAddressKey": pix_key,
                "pixAddressKeyType": pix_key_type,
                "description": description,
                "externalReference": external_reference,
            },
            log_context={
                "external_reference": external_reference,
                "amount_centavos": amount_centavos,
            },
        )
        return cls._transfer_result(data)
