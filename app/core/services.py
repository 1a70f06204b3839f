"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with a per-service logger

Pattern Comparison:
    - ServiceResult: Use for expected outcomes a caller branches on
      (webhook handlers, background tasks)
    - Exceptions: Use for request failures that must reach the API layer
      (see core.exceptions)

Usage:
    from core.services import BaseService, ServiceResult

    class BalanceService(BaseService):
        @classmethod
        def close(cls, creator_id) -> ServiceResult[None]:
            ...
            cls.get_logger().info("Closed balance", extra={"creator_id": str(creator_id)})
            return ServiceResult.success(None)

    result = BalanceService.close(creator_id)
    if not result:
        logger.warning(result.error)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code

    Usage:
        return ServiceResult.success(payment)
        return ServiceResult.failure("Payment not found", "PAYMENT_NOT_FOUND")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code
        """
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their own error_code; anything else uses
        the exception class name.
        """
        code = error_code or getattr(exc, "error_code", None)
        return cls(
            success=False,
            error=str(getattr(exc, "message", exc)),
            error_code=code or exc.__class__.__name__.upper(),
        )

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Services are stateless: use classmethods and pass everything in.
    get_logger() returns a logger named after the concrete service class.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get a logger named "<module>.<ServiceClass>"."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")
