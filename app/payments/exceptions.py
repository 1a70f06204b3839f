"""
Payment-specific exceptions for payment operations.

This module provides the exception hierarchy for the payment domain,
the PIX gateway integration and inbound gateway notifications.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment lookup failures (404)
    ├── ProductNotFoundError - Creator/content/pack/message not found (404)
    ├── NotPurchasableError - Product exists but cannot be bought (400)
    ├── DuplicatePurchaseError - Payer already owns the entitlement (409)
    ├── AmountBelowMinimumError - Price below the kind minimum (400)
    ├── InvalidAmountError - Non-positive, non-integer or above maximum (400)
    ├── InvalidPaymentMetadataError - Metadata does not match its kind (400)
    ├── RefundNotAllowedError - Refund of a non-confirmed payment (409)
    └── PaymentProcessingError - Gateway-side failures
        └── GatewayError - Base for all gateway errors (502)
            ├── GatewayRequestError - Rejected request (permanent)
            ├── GatewayAuthenticationError - Bad API key (permanent)
            └── GatewayUnavailableError - Network/5xx/timeout (transient, retry)

    InsufficientBalanceError - Payout larger than available balance
        (defined in payments.ledger.exceptions, re-exported here)

    WebhookAuthenticationError - Shared token mismatch (401)
    InvalidWebhookPayloadError - Malformed notification body (400)

Usage:
    from payments.exceptions import (
        DuplicatePurchaseError,
        GatewayError,
        ProductNotFoundError,
    )

    raise ProductNotFoundError(
        "Content not found",
        error_code="CONTENT_NOT_FOUND",
        details={"content_id": str(content_id)},
    )

    try:
        AsaasAdapter.create_pix_charge(params)
    except GatewayError as e:
        if e.is_retryable:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError
from payments.ledger.exceptions import InsufficientBalanceError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    All payment-specific exceptions inherit from this class,
    which itself inherits from BaseApplicationError for
    consistent API error responses.
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """Raised when a Payment (or Payout) cannot be found."""

    default_error_code: str = "PAYMENT_NOT_FOUND"
    http_status: int = 404


class ProductNotFoundError(PaymentError):
    """
    Raised when the thing being bought does not exist.

    Use for:
    - Creator lookup fails (subscription, tip)
    - Content lookup fails (ppv)
    - MediaPack lookup fails (pack)
    - Message lookup fails (message ppv)
    """

    default_error_code: str = "PRODUCT_NOT_FOUND"
    http_status: int = 404


class NotPurchasableError(PaymentError):
    """
    Raised when a product exists but cannot be bought by this payer.

    Use for:
    - Paying yourself (subscription or tip to own profile)
    - Content that is not PPV, or a media index out of range
    - Inactive packs, messages without a price
    - Pro plan for a user without a creator profile
    """

    default_error_code: str = "NOT_PURCHASABLE"


class DuplicatePurchaseError(PaymentError):
    """
    Raised when the payer already holds the entitlement being bought.

    Checked before any Payment row or gateway charge is created.
    """

    default_error_code: str = "DUPLICATE_PURCHASE"
    http_status: int = 409


class AmountBelowMinimumError(PaymentError):
    """
    Raised when a price is below the minimum for its payment kind.

    Example:
        raise AmountBelowMinimumError(
            "Tip is below the minimum amount",
            details={"kind": "tip", "minimum": 990, "amount": 500},
        )
    """

    default_error_code: str = "AMOUNT_BELOW_MINIMUM"


class InvalidAmountError(PaymentError):
    """Raised for non-positive or non-integer amounts, or amounts above the kind maximum."""

    default_error_code: str = "INVALID_AMOUNT"


class InvalidPaymentMetadataError(PaymentError):
    """
    Raised when stored or supplied metadata does not parse into the
    variant expected for the payment kind.
    """

    default_error_code: str = "INVALID_PAYMENT_METADATA"


class RefundNotAllowedError(PaymentError):
    """
    Raised when a refund is applied to a payment that is not confirmed.

    A repeat refund of an already refunded payment is not an error.
    """

    default_error_code: str = "REFUND_NOT_ALLOWED"
    http_status: int = 409


class PayoutNotAllowedError(PaymentError):
    """
    Raised when a payout request cannot be honored.

    Use for:
    - Creator without a PIX key
    - Another payout still open for the creator
    """

    default_error_code: str = "PAYOUT_NOT_ALLOWED"


class PaymentProcessingError(PaymentError):
    """Raised when payment processing fails outside our own validation."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"
    http_status: int = 502


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PaymentProcessingError):
    """
    Base exception for all PIX gateway errors.

    Provides common attributes for gateway error handling:
    - gateway_code: The gateway's own error code (from ``errors[].code``)
    - status_code: HTTP status returned by the gateway, when any
    - is_retryable: Whether the operation can be retried

    Use is_retryable to determine retry behavior:
    - True: Transient error, safe to retry with backoff
    - False: Permanent error, do not retry
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway_code:
            details["gateway_code"] = gateway_code
        if status_code:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.gateway_code = gateway_code
        self.status_code = status_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class GatewayRequestError(GatewayError):
    """
    The gateway rejected the request (HTTP 4xx other than 401/429).

    Usually invalid customer data (tax id), an unknown charge id or an
    operation not allowed for the charge status. Retrying with the same
    parameters will not succeed.
    """

    default_error_code: str = "GATEWAY_REQUEST_REJECTED"
    is_retryable: bool = False


class GatewayAuthenticationError(GatewayError):
    """
    The gateway refused our API key (HTTP 401).

    Requires operator action; never retried automatically.
    """

    default_error_code: str = "GATEWAY_AUTHENTICATION_FAILED"
    is_retryable: bool = False


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class GatewayUnavailableError(GatewayError):
    """
    The gateway could not be reached or answered with 5xx/429.

    This covers connection errors, timeouts, rate limiting and server
    errors. A timed out charge creation may have succeeded on the gateway
    side; the payment id travels as ``externalReference`` so it can be
    matched later by the poll sweep.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


# =============================================================================
# Webhook Exceptions
# =============================================================================


class WebhookAuthenticationError(BaseApplicationError):
    """Raised when the notification shared token is missing or wrong."""

    default_error_code: str = "WEBHOOK_UNAUTHORIZED"
    http_status: int = 401


class InvalidWebhookPayloadError(BaseApplicationError):
    """Raised when a notification body is not a JSON object with an event type."""

    default_error_code: str = "INVALID_WEBHOOK_PAYLOAD"
    http_status: int = 400


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "ProductNotFoundError",
    "NotPurchasableError",
    "DuplicatePurchaseError",
    "AmountBelowMinimumError",
    "InvalidAmountError",
    "InvalidPaymentMetadataError",
    "RefundNotAllowedError",
    "PayoutNotAllowedError",
    "PaymentProcessingError",
    "InsufficientBalanceError",
    # Gateway
    "GatewayError",
    "GatewayRequestError",
    "GatewayAuthenticationError",
    "GatewayUnavailableError",
    # Webhooks
    "WebhookAuthenticationError",
    "InvalidWebhookPayloadError",
]
