"""
Error handling module for the location service.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- AppException and the domain error families (LocationValidationError, StoreError)
- Error response model for consistent API responses
- Exception handlers for FastAPI integration
"""

from errors.codes import ErrorCode
from errors.exceptions import (
    AppException,
    LocationValidationError,
    StoreError,
    StoreErrorKind,
    ValidationReason,
)
from errors.handlers import (
    ErrorResponse,
    error_json_response,
    handle_app_exception,
    handle_store_error,
    handle_unexpected_exception,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "LocationValidationError",
    "StoreError",
    "StoreErrorKind",
    "ValidationReason",
    "ErrorResponse",
    "error_json_response",
    "handle_app_exception",
    "handle_store_error",
    "handle_unexpected_exception",
    "register_exception_handlers",
]
