"""
Request body size cap.

Requests that declare a Content-Length above the configured maximum are
answered with 413 before the body is read. Bodies without a declared
length (chunked uploads) are counted as they arrive and rejected as soon
as the count passes the maximum; accepted bodies are replayed to the
application unchanged.
"""

import logging
from typing import Optional

from fastapi import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from errors.codes import ErrorCode
from errors.handlers import error_json_response

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    """
    Reject requests whose body exceeds ``max_body_bytes``.

    A plain ASGI middleware: the cap is applied to ``receive`` itself.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        rejection = self._check_declared_length(request)
        if rejection is not None:
            await rejection(scope, receive, send)
            return

        chunks: list[bytes] = []
        received = 0
        while True:
            message = await receive()
            if message["type"] != "http.request":
                # Client went away before the body was complete
                return
            chunk = message.get("body", b"")
            received += len(chunk)
            if received > self.max_body_bytes:
                await self._too_large(request, received)(scope, receive, send)
                return
            chunks.append(chunk)
            if not message.get("more_body", False):
                break

        body = b"".join(chunks)
        replayed = False

        async def replay_receive() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay_receive, send)

    def _check_declared_length(self, request: Request) -> Optional[Response]:
        content_length = request.headers.get("content-length")
        if content_length is None:
            return None

        try:
            declared = int(content_length)
        except ValueError:
            return error_json_response(
                request,
                ErrorCode.INVALID_REQUEST,
                "Invalid Content-Length header",
                400,
            )

        if declared > self.max_body_bytes:
            return self._too_large(request, declared)
        return None

    def _too_large(self, request: Request, size: int) -> Response:
        logger.warning(
            "Request body too large",
            extra={"extra_data": {
                "path": request.url.path,
                "received_bytes": size,
                "max_body_bytes": self.max_body_bytes,
            }}
        )
        return error_json_response(
            request,
            ErrorCode.PAYLOAD_TOO_LARGE,
            "Request body too large",
            413,
            details={"max_body_bytes": self.max_body_bytes},
        )
