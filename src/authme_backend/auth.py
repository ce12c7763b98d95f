from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import time

from fastapi import Depends, Request, Response
from sqlmodel.ext.asyncio.session import AsyncSession

from authme_backend.config import Settings, settings
from authme_backend.db import get_session
from authme_backend.errors import Failure
from authme_backend.models import User


_SESSION_VERSION = "v1"


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was built with (see ``create_app``)."""

    return getattr(request.app.state, "settings", settings)


def _hmac_sha256(secret: str, message: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def make_session_token(
    user_id: int, now_ts: int | None = None, *, app_settings: Settings = settings
) -> str:
    """Create a signed session token.

    Format (dot-separated): version.exp.user_id.nonce.sig
    """

    now = int(now_ts if now_ts is not None else time.time())
    exp = now + int(app_settings.session_max_age_seconds)
    nonce = secrets.token_urlsafe(16)
    payload = f"{_SESSION_VERSION}.{exp}.{int(user_id)}.{nonce}"
    sig = _hmac_sha256(app_settings.session_secret, payload)
    return f"{payload}.{sig}"


def verify_session_token(
    token: str | None, now_ts: int | None = None, *, app_settings: Settings = settings
) -> int | None:
    """Return the user id carried by a valid token, or None if invalid/expired."""

    if not token:
        return None

    parts = token.split(".")
    if len(parts) != 5:
        return None

    v, exp_s, user_id_s, nonce, sig = parts
    if v != _SESSION_VERSION or not nonce:
        return None
    if not exp_s.isdigit() or not user_id_s.isdigit():
        return None

    now = int(now_ts if now_ts is not None else time.time())
    if int(exp_s) < now:
        return None

    expected = _hmac_sha256(app_settings.session_secret, f"{v}.{exp_s}.{user_id_s}.{nonce}")
    if not secrets.compare_digest(sig, expected):
        return None
    return int(user_id_s)


def set_token_cookie(response: Response, user: User, app_settings: Settings) -> str:
    if user.id is None:
        raise ValueError("cannot issue a session for an unsaved user")

    token = make_session_token(int(user.id), app_settings=app_settings)
    response.set_cookie(
        key=app_settings.session_cookie_name,
        value=token,
        max_age=int(app_settings.session_max_age_seconds),
        httponly=True,
        secure=app_settings.is_production,
        samesite="lax" if app_settings.is_production else None,
        path="/",
    )
    return token


def clear_token_cookie(response: Response, app_settings: Settings) -> None:
    response.delete_cookie(key=app_settings.session_cookie_name, path="/")


async def restore_user(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
    app_settings: Settings = Depends(get_app_settings),
) -> User | None:
    """Current user from the session cookie; a stale cookie is cleared."""

    token = request.cookies.get(app_settings.session_cookie_name)
    if not token:
        return None

    user_id = verify_session_token(token, app_settings=app_settings)
    user = await session.get(User, user_id) if user_id is not None else None
    if user is None:
        clear_token_cookie(response, app_settings)
        return None
    return user


async def require_auth(user: User | None = Depends(restore_user)) -> User:
    if user is None:
        raise Failure(
            status=401,
            title="Authentication required",
            message="Authentication required",
            errors={"message": "Authentication required"},
        )
    return user
