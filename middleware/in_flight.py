"""
In-flight request tracking for graceful shutdown.

Every request is registered with the lifecycle manager before it reaches
the router and released when the response is produced. While the service
is draining, new requests are refused with 503.
"""

from typing import Any, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from errors.codes import ErrorCode
from errors.handlers import error_json_response


class InFlightMiddleware(BaseHTTPMiddleware):
    """
    Count in-flight requests on a lifecycle manager.

    Args:
        app: The ASGI application to wrap
        lifecycle: Object exposing ``request_started() -> bool`` and
            ``request_finished()``; normally a ``LifecycleManager``
    """

    def __init__(self, app: ASGIApp, lifecycle: Any):
        super().__init__(app)
        self.lifecycle = lifecycle

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        if not self.lifecycle.request_started():
            return error_json_response(
                request,
                ErrorCode.SERVICE_UNAVAILABLE,
                "Service is not accepting requests",
                503,
                details={"state": self.lifecycle.state.value},
                headers={"Connection": "close"},
            )

        try:
            return await call_next(request)
        finally:
            self.lifecycle.request_finished()
