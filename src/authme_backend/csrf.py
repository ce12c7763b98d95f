"""Double-submit CSRF protection.

Every client holds an httpOnly secret cookie. Safe requests are handed a fresh
token (readable ``XSRF-TOKEN`` cookie and ``request.state.csrf_token``); unsafe
requests must echo a token derived from that secret in a header.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from authme_backend.config import Settings
from authme_backend.error_pipeline import ErrorPipeline
from authme_backend.errors import Failure

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
_FALLBACK_HEADERS = ("csrf-token", "xsrf-token", "x-csrf-token", "x-xsrf-token")


def generate_secret() -> str:
    return secrets.token_urlsafe(18)


def _sign(secret: str, salt: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), salt.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def make_token(secret: str) -> str:
    salt = secrets.token_urlsafe(6)
    return f"{salt}.{_sign(secret, salt)}"


def verify_token(secret: str | None, token: str | None) -> bool:
    if not secret or not token:
        return False
    salt, sep, sig = token.partition(".")
    if not sep or not salt or not sig:
        return False
    return secrets.compare_digest(sig, _sign(secret, salt))


def _token_from_headers(request: Request, header_name: str) -> str | None:
    for name in (header_name, *_FALLBACK_HEADERS):
        value = request.headers.get(name)
        if value:
            return value.strip()
    return None


def _set_cookie_headers(cookies: list[tuple[str, str, bool]], *, secure: bool) -> list[tuple[bytes, bytes]]:
    carrier = Response()
    for key, value, httponly in cookies:
        carrier.set_cookie(
            key=key,
            value=value,
            httponly=httponly,
            secure=secure,
            samesite="lax" if secure else None,
            path="/",
        )
    return [(k, v) for (k, v) in carrier.raw_headers if k == b"set-cookie"]


class CsrfMiddleware:
    def __init__(self, app: ASGIApp, *, pipeline: ErrorPipeline, app_settings: Settings) -> None:
        self.app: ASGIApp = app
        self.pipeline = pipeline
        self.settings = app_settings
        self.secure = app_settings.is_production

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        secret = request.cookies.get(self.settings.csrf_secret_cookie_name)
        method = request.method.upper()

        header_token = _token_from_headers(request, self.settings.csrf_header_name)
        if method not in SAFE_METHODS and not verify_token(secret, header_token):
            failure = Failure(
                status=403,
                title="Invalid CSRF token",
                message="invalid csrf token",
                errors=["invalid csrf token"],
            )
            response = self.pipeline.respond(failure)
            await response(scope, receive, send)
            return

        cookies: list[tuple[str, str, bool]] = []
        if not secret:
            secret = generate_secret()
            cookies.append((self.settings.csrf_secret_cookie_name, secret, True))

        token = make_token(secret)
        scope.setdefault("state", {})["csrf_token"] = token
        if method in SAFE_METHODS:
            cookies.append((self.settings.csrf_token_cookie_name, token, False))

        extra_headers = _set_cookie_headers(cookies, secure=self.secure) if cookies else []

        async def send_wrapper(message: Message) -> None:
            if extra_headers and message.get("type") == "http.response.start":
                message["headers"] = [*message.get("headers", []), *extra_headers]
            await send(message)

        await self.app(scope, receive, send_wrapper)
