from __future__ import annotations

from collections.abc import AsyncGenerator
from http.cookies import Morsel, SimpleCookie
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI

from authme_backend.config import Settings, settings
from authme_backend.csrf import generate_secret, make_token
from authme_backend.db import dispose_engine_cache, init_db


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db(tmp_path: Path) -> AsyncGenerator[None, None]:
    old_db = settings.database_url
    settings.database_url = f"sqlite:///{tmp_path / 'test.db'}"
    try:
        await init_db()
        yield
    finally:
        # Shut aiosqlite down while the event loop is still alive.
        await dispose_engine_cache()
        settings.database_url = old_db


def make_async_client(app: FastAPI) -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


def csrf_headers(extra_cookies: dict[str, str] | None = None) -> dict[str, str]:
    secret = generate_secret()
    cookies = {settings.csrf_secret_cookie_name: secret, **(extra_cookies or {})}
    return {
        "cookie": "; ".join(f"{k}={v}" for k, v in cookies.items()),
        settings.csrf_header_name: make_token(secret),
    }


def response_cookies(r: httpx.Response) -> dict[str, Morsel[str]]:
    out: dict[str, Morsel[str]] = {}
    for raw in r.headers.get_list("set-cookie"):
        parsed: SimpleCookie = SimpleCookie()
        parsed.load(raw)
        for name in parsed:
            out[name] = parsed[name]
    return out


def production_settings() -> Settings:
    return Settings(
        environment="production",
        session_secret="strong-session-secret",
        database_url="postgresql://u:p@localhost:5432/authme",
        cors_allow_origins="https://app.example.com",
    )
