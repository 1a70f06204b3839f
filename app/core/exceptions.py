"""
Base exception classes for application-wide error handling.

Domain code raises these exceptions; the API layer turns them into a
consistent JSON body through ``api_exception_handler`` (registered as the
DRF ``EXCEPTION_HANDLER``).

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input or business-rule validation failures (400)
    ├── NotFoundError - Resource not found (404)
    ├── PermissionDeniedError - Authorization failures (403)
    ├── ConflictError - State conflicts such as duplicates (409)
    └── ExternalServiceError - Third-party service failures (502)

Usage:
    from core.exceptions import ValidationError, NotFoundError

    raise ValidationError("Invalid tax id", error_code="INVALID_TAX_ID")

    raise NotFoundError(
        "Creator not found",
        error_code="CREATOR_NOT_FOUND",
        details={"creator_id": str(creator_id)},
    )

Response body:
    {
        "error": "Creator not found",
        "error_code": "CREATOR_NOT_FOUND",
        "details": {"creator_id": "..."}
    }
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any

    from rest_framework.response import Response


logger = logging.getLogger(__name__)


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (ids, limits, field errors)
        http_status: Status code used when the error reaches the API layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input or a business rule is violated.

    Example:
        raise ValidationError(
            "Tip is below the minimum amount",
            error_code="AMOUNT_BELOW_MINIMUM",
            details={"minimum": 990, "amount": 500},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource does not exist."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller is not allowed to perform an operation.

    For authentication failures (missing or invalid credentials) use DRF's
    AuthenticationFailed. This class covers authorization.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with the current resource state.

    Use for duplicate purchases, illegal state transitions and
    concurrent modification conflicts.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class ExternalServiceError(BaseApplicationError):
    """
    Raised when a third-party service call fails.

    Log the original error for debugging but keep internal details out of
    client responses.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502


# =============================================================================
# DRF Integration
# =============================================================================


def api_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """
    DRF exception handler that understands BaseApplicationError.

    Application errors are rendered with their own status code and
    ``to_dict()`` body. Everything else falls through to DRF's default
    handler (which returns None for unhandled exceptions, producing a 500).

    Configured in settings:
        REST_FRAMEWORK = {
            "EXCEPTION_HANDLER": "core.exceptions.api_exception_handler",
        }
    """
    from rest_framework.response import Response
    from rest_framework.views import exception_handler as drf_exception_handler

    if isinstance(exc, BaseApplicationError):
        view = context.get("view")
        logger.info(
            "Application error returned to client",
            extra={
                "error_code": exc.error_code,
                "status_code": exc.http_status,
                "view": view.__class__.__name__ if view else None,
            },
        )
        return Response(exc.to_dict(), status=exc.http_status)

    return drf_exception_handler(exc, context)
