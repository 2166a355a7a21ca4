"""
Exception handlers for the location service.

This module provides FastAPI exception handlers that convert exceptions
to structured JSON error responses with a consistent format:

    {"error_code": ..., "message": ..., "details": ..., "request_id": ...}

Store failures and unexpected exceptions are logged in full on the server
and answered with a generic message, so backend details never reach the
client.
"""

import logging
import traceback
import uuid
from typing import Any, Optional, Sequence

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from errors.codes import ErrorCode
from errors.exceptions import AppException, StoreError

logger = logging.getLogger(__name__)

STORE_FAILURE_MESSAGE = "The location store could not complete the request. Please try again later."
UNEXPECTED_FAILURE_MESSAGE = "An unexpected error occurred. Please try again later."


class ErrorResponse(BaseModel):
    """
    Structured error response model.

    All error responses from the API follow this format for consistency
    and to enable programmatic error handling by clients.
    """
    error_code: str
    message: str
    details: Optional[dict[str, Any]] = None
    request_id: str


def get_request_id(request: Request) -> str:
    """
    Get the request ID from the request state or generate a new one.

    RequestIDMiddleware normally sets this value; a fresh UUID is used when
    the handler runs outside of it.

    Args:
        request: The FastAPI request object

    Returns:
        The request ID string
    """
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid.uuid4())


def error_json_response(
    request: Request,
    error_code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """
    Build a JSONResponse in the structured error format.

    Used by the exception handlers below and by middleware that has to
    answer a request without reaching the router.
    """
    error_response = ErrorResponse(
        error_code=error_code.value,
        message=message,
        details=details,
        request_id=get_request_id(request),
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(exclude_none=True),
        headers=headers,
    )


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle known application exceptions and convert to structured response.

    Args:
        request: The FastAPI request object
        exc: The AppException that was raised

    Returns:
        JSONResponse with structured error format
    """
    logger.warning(
        "Application error occurred",
        extra={"extra_data": {
            "error_code": exc.error_code.value,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        }}
    )

    return error_json_response(
        request,
        exc.error_code,
        exc.message,
        exc.status_code,
        details=exc.details,
    )


async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
    """
    Handle backing store failures.

    The internal message and the chained backend exception are logged;
    the client receives only the error code and a generic message.
    """
    cause = exc.__cause__
    logger.error(
        f"Store error: {exc.message}",
        extra={"extra_data": {
            "error_code": exc.error_code.value,
            "store_error_kind": exc.kind.value,
            "operation": exc.operation,
            "cause_type": type(cause).__name__ if cause else None,
            "cause": str(cause) if cause else None,
            "path": request.url.path,
            "method": request.method,
        }}
    )

    return error_json_response(
        request,
        exc.error_code,
        STORE_FAILURE_MESSAGE,
        exc.status_code,
    )


def make_http_exception_handler(available_endpoints: Sequence[str]):
    """
    Create the handler for Starlette routing errors.

    Unmatched paths and unsupported methods are both reported as
    RESOURCE_NOT_FOUND (404) together with the list of endpoints the
    service does expose. Other HTTP errors keep their status code.

    Args:
        available_endpoints: Endpoint descriptions, e.g. "POST /api/location"
    """
    endpoints = list(available_endpoints)

    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return error_json_response(
                request,
                ErrorCode.RESOURCE_NOT_FOUND,
                f"Route {request.method} {request.url.path} does not exist",
                404,
                details={"available_endpoints": endpoints},
            )

        error_code = ErrorCode.INVALID_REQUEST if exc.status_code < 500 else ErrorCode.INTERNAL_ERROR
        return error_json_response(
            request,
            error_code,
            str(exc.detail),
            exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    return handle_http_exception


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions safely without exposing internal details.

    This handler catches all unhandled exceptions, logs the full stack trace
    for debugging, and returns a generic error response to the client.

    Args:
        request: The FastAPI request object
        exc: The unexpected exception that was raised

    Returns:
        JSONResponse with generic error message (no internal details exposed)
    """
    logger.error(
        "Unexpected error occurred",
        extra={"extra_data": {
            "error_code": ErrorCode.INTERNAL_ERROR.value,
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "stack_trace": traceback.format_exc(),
        }},
        exc_info=exc,
    )

    return error_json_response(
        request,
        ErrorCode.INTERNAL_ERROR,
        UNEXPECTED_FAILURE_MESSAGE,
        500,
    )


def register_exception_handlers(app, available_endpoints: Sequence[str] = ()) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Handlers are resolved by exception MRO, so StoreError takes precedence
    over the generic AppException handler.

    Args:
        app: The FastAPI application instance
        available_endpoints: Endpoint list reported on 404 responses
    """
    app.add_exception_handler(StoreError, handle_store_error)
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(StarletteHTTPException, make_http_exception_handler(available_endpoints))
    app.add_exception_handler(Exception, handle_unexpected_exception)

    logger.info("Exception handlers registered successfully")
