"""
Middleware components for the location service.

This module contains FastAPI middleware for cross-cutting concerns
such as request correlation, access logging, transport limits and
graceful shutdown.
"""

from middleware.request_id import RequestIDMiddleware, request_id_var, REQUEST_ID_HEADER
from middleware.rate_limiter import (
    RateLimitMiddleware,
    create_rate_limiter,
    get_client_ip,
)
from middleware.body_limit import BodySizeLimitMiddleware
from middleware.security_headers import (
    SecurityHeadersMiddleware,
    build_csp_header,
    DEFAULT_CSP_DIRECTIVES,
)
from middleware.in_flight import InFlightMiddleware

__all__ = [
    "RequestIDMiddleware",
    "request_id_var",
    "REQUEST_ID_HEADER",
    "RateLimitMiddleware",
    "create_rate_limiter",
    "get_client_ip",
    "BodySizeLimitMiddleware",
    "SecurityHeadersMiddleware",
    "build_csp_header",
    "DEFAULT_CSP_DIRECTIVES",
    "InFlightMiddleware",
]
