"""
Per-IP rate limiting for the /api/ endpoints.

Rate limits are tracked by a slowapi Limiter (backed by the ``limits``
package, in-memory storage by default). The ceiling and the window length
come from settings; health and info endpoints are not limited.
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from errors.codes import ErrorCode
from errors.handlers import error_json_response

logger = logging.getLogger(__name__)

RATE_LIMITED_PATH_PREFIX = "/api/"


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.

    Checks common forwarding headers before falling back to the direct
    client address.

    Args:
        request: The incoming FastAPI request

    Returns:
        The client's IP address as a string
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def create_rate_limiter(storage_uri: str = "memory://") -> Limiter:
    """
    Create a Limiter keyed by client IP.

    Each application instance gets its own limiter so counters are not
    shared between apps created in the same process.
    """
    return Limiter(key_func=get_client_ip, storage_uri=storage_uri)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware that enforces one rate limit on every path under /api/.

    Requests over the limit receive a structured 429 response with a
    Retry-After header and never reach the router.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter: Limiter,
        limit: str,
        path_prefix: str = RATE_LIMITED_PATH_PREFIX,
    ):
        """
        Initialize the rate limit middleware.

        Args:
            app: The ASGI application to wrap
            limiter: The slowapi Limiter holding the counters
            limit: Limit string in ``limits`` notation, e.g. "100 per 60 second"
            path_prefix: Only paths with this prefix are limited
        """
        super().__init__(app)
        self.limiter = limiter
        self.limit_item = parse(limit)
        self.path_prefix = path_prefix

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        client_ip = get_client_ip(request)
        strategy = self.limiter.limiter

        if not strategy.hit(self.limit_item, client_ip):
            reset_at = strategy.get_window_stats(self.limit_item, client_ip)[0]
            retry_after = max(1, int(reset_at - time.time()))

            logger.warning(
                f"Rate limit exceeded for IP {client_ip}",
                extra={"extra_data": {
                    "path": request.url.path,
                    "method": request.method,
                    "limit": str(self.limit_item),
                }}
            )

            return error_json_response(
                request,
                ErrorCode.RATE_LIMITED,
                "Too many requests. Please slow down.",
                429,
                details={
                    "limit": str(self.limit_item),
                    "retry_after_seconds": retry_after,
                },
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
