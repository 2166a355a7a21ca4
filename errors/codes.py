"""
Error code catalog for the location service.

This module defines all error codes used throughout the application,
covering client validation errors, backing store failures, transport
limits and internal errors.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used in the application.

    Each error code maps to a specific HTTP status code and error category:
    - Client errors (4xx): Request validation and routing issues
    - Transport limits (4xx): Rate limiting and body size cap
    - Store errors (5xx): Backing store failures
    - Internal errors (5xx): Server-side issues
    """

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Location sample failed validation (HTTP 400)"""

    INVALID_REQUEST = "INVALID_REQUEST"
    """Malformed request body or query parameter (HTTP 400)"""

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    """No route matches the request (HTTP 404)"""

    # Transport limits (4xx)
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    """Request body exceeds the configured cap (HTTP 413)"""

    RATE_LIMITED = "RATE_LIMITED"
    """Too many requests (HTTP 429)"""

    # Store errors (5xx)
    STORE_TIMEOUT = "STORE_TIMEOUT"
    """Store call exceeded its deadline (HTTP 500)"""

    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    """Store unreachable or not provisioned (HTTP 500)"""

    STORE_ERROR = "STORE_ERROR"
    """Unclassified store failure (HTTP 500)"""

    # Internal errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""

    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    """Service is draining and refuses new work (HTTP 503)"""


# Mapping of error codes to their default HTTP status codes
ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.PAYLOAD_TOO_LARGE: 413,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.STORE_TIMEOUT: 500,
    ErrorCode.STORE_UNAVAILABLE: 500,
    ErrorCode.STORE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
