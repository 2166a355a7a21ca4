"""
Exception classes for the location service.

This module provides the AppException base class, the two domain error
families (location validation and store failures) and a factory for
malformed-request errors.
"""

from enum import Enum
from typing import Any, Optional

from errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all application-specific errors.

    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - status_code: The HTTP status code to return
    - details: Optional additional context (e.g., the offending field)

    Example:
        raise AppException(
            error_code=ErrorCode.INVALID_REQUEST,
            message="startTime must be an integer",
            details={"parameter": "startTime"}
        )
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize an AppException.

        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            status_code: The HTTP status code (defaults to the error code's default)
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


class ValidationReason(str, Enum):
    """Why a location sample was rejected."""
    MISSING_FIELD = "MISSING_FIELD"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    BAD_TIMESTAMP = "BAD_TIMESTAMP"


class LocationValidationError(AppException):
    """
    A client-caused rejection of a location sample or query.

    Always surfaced as HTTP 400 and never retried. The ``reason`` and the
    offending ``field`` are exposed to the client in ``details``.
    """

    def __init__(self, reason: ValidationReason, message: str, field: Optional[str] = None):
        self.reason = reason
        self.field = field
        details: dict[str, Any] = {"reason": reason.value}
        if field is not None:
            details["field"] = field
        super().__init__(
            error_code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details=details,
        )


class StoreErrorKind(str, Enum):
    """Classification of backing store failures."""
    TIMEOUT = "TIMEOUT"
    UNAVAILABLE = "UNAVAILABLE"
    UNKNOWN = "UNKNOWN"


_STORE_ERROR_CODES = {
    StoreErrorKind.TIMEOUT: ErrorCode.STORE_TIMEOUT,
    StoreErrorKind.UNAVAILABLE: ErrorCode.STORE_UNAVAILABLE,
    StoreErrorKind.UNKNOWN: ErrorCode.STORE_ERROR,
}


class StoreError(AppException):
    """
    A failure in the backing store.

    The ``message`` carries the internal description (operation, backend
    error) for server-side logs. Clients only ever see a generic message;
    see ``errors.handlers.handle_store_error``.

    Attributes:
        kind: The StoreErrorKind classification
        operation: Name of the store operation that failed
    """

    def __init__(self, kind: StoreErrorKind, message: str, operation: Optional[str] = None):
        self.kind = kind
        self.operation = operation
        super().__init__(error_code=_STORE_ERROR_CODES[kind], message=message)

    @classmethod
    def timeout(cls, operation: str, seconds: float) -> "StoreError":
        return cls(
            StoreErrorKind.TIMEOUT,
            f"Store operation '{operation}' timed out after {seconds}s",
            operation=operation,
        )

    @classmethod
    def unavailable(cls, operation: str, reason: str) -> "StoreError":
        return cls(
            StoreErrorKind.UNAVAILABLE,
            f"Store unavailable during '{operation}': {reason}",
            operation=operation,
        )

    @classmethod
    def unknown(cls, operation: str, reason: str) -> "StoreError":
        return cls(
            StoreErrorKind.UNKNOWN,
            f"Store operation '{operation}' failed: {reason}",
            operation=operation,
        )


# Convenience factory for malformed requests

def invalid_request(
    message: str,
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an invalid request exception."""
    return AppException(
        error_code=ErrorCode.INVALID_REQUEST,
        message=message,
        details=details
    )
