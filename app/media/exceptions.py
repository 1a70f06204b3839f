"""
Exceptions raised by secure media access.

Both derive from core.exceptions so the API layer renders them with
their own status code.
"""

from core.exceptions import BaseApplicationError, PermissionDeniedError


class InvalidAccessTokenError(BaseApplicationError):
    """Token signature, expiry or claims did not verify."""

    default_error_code = "INVALID_ACCESS_TOKEN"
    http_status = 401


class AccessDeniedError(PermissionDeniedError):
    """Caller is not entitled to the resource."""

    default_error_code = "ACCESS_DENIED"
