"""
Security headers middleware.

Adds the usual hardening headers to every response of the JSON API:
X-Content-Type-Options, X-Frame-Options, Content-Security-Policy and
Referrer-Policy. Handlers that already set one of them keep their value.
"""

from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp


# The service only returns JSON, so nothing needs to load from anywhere
DEFAULT_CSP_DIRECTIVES = {
    "default-src": "'none'",
    "frame-ancestors": "'none'",
    "base-uri": "'none'",
    "form-action": "'none'",
}


def build_csp_header(directives: Optional[dict[str, str]] = None) -> str:
    """
    Build a Content-Security-Policy header string from directives.

    Args:
        directives: Dictionary of CSP directives. If None, uses defaults.

    Returns:
        CSP header string in the format "directive1 value1; directive2 value2"
    """
    if directives is None:
        directives = DEFAULT_CSP_DIRECTIVES

    return "; ".join(f"{key} {value}" for key, value in directives.items())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware that adds security headers to all HTTP responses."""

    def __init__(self, app: ASGIApp, csp_directives: Optional[dict[str, str]] = None):
        super().__init__(app)
        self.headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Content-Security-Policy": build_csp_header(csp_directives),
            "Referrer-Policy": "no-referrer",
        }

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            if name not in response.headers:
                response.headers[name] = value
        return response
