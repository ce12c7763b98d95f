from __future__ import annotations

import logging
import time
import uuid
from typing import cast

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

access_logger = logging.getLogger("authme_backend.access")

# helmet defaults, with a cross-origin resource policy so a separately hosted
# frontend can load assets.
SECURE_HEADERS = {
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


class RequestLoggingMiddleware:
    """One access log line per request, plus an echoed/generated X-Request-Id.

    Line format: ``METHOD /path STATUS ELAPSED ms - BYTES``
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app: ASGIApp = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id_header: bytes | None = None
        inbound_headers = cast(list[tuple[bytes, bytes]], scope.get("headers") or [])
        for key, value in inbound_headers:
            if key.lower() == b"x-request-id":
                value = value.strip()
                if value:
                    request_id_header = value
                break
        if request_id_header is None:
            request_id_header = str(uuid.uuid4()).encode("ascii")
        scope.setdefault("state", {})["request_id"] = request_id_header.decode("latin-1")

        started = time.perf_counter()
        status_code = 500
        content_length = "-"

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, content_length
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = cast(list[tuple[bytes, bytes]], message.get("headers", []))
                headers = [(k, v) for (k, v) in headers if k.lower() != b"x-request-id"]
                headers.append((b"x-request-id", request_id_header))
                message["headers"] = headers
                for k, v in headers:
                    if k.lower() == b"content-length":
                        content_length = v.decode("latin-1")
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            access_logger.info(
                "%s %s %s %.3f ms - %s",
                scope.get("method", "-"),
                scope.get("path", "-"),
                status_code,
                elapsed_ms,
                content_length,
            )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for header_name, header_value in SECURE_HEADERS.items():
            response.headers.setdefault(header_name, header_value)
        return response
