from __future__ import annotations

import pytest

from authme_backend.auth import make_session_token
from authme_backend.config import settings
from authme_backend.db import session_scope
from authme_backend.main import app
from authme_backend.repositories import users_repo
from authme_backend.security import hash_password
from conftest import csrf_headers, make_async_client, response_cookies


async def _create_user() -> int:
    async with session_scope() as session:
        user = await users_repo.create_user(
            session,
            email="login@example.com",
            username="login-user",
            first_name="Log",
            last_name="In",
            hashed_password=hash_password("pass1234"),
        )
    assert user.id is not None
    return int(user.id)


@pytest.mark.anyio
@pytest.mark.parametrize("credential", ["login-user", "login@example.com"])
async def test_login_with_username_or_email(db: None, credential: str):
    user_id = await _create_user()

    async with make_async_client(app) as client:
        r = await client.post(
            "/api/session",
            json={"credential": credential, "password": "pass1234"},
            headers=csrf_headers(),
        )

    assert r.status_code == 200
    assert r.json()["user"]["id"] == user_id
    assert settings.session_cookie_name in response_cookies(r)


@pytest.mark.anyio
async def test_login_bad_password_returns_401_contract(db: None):
    await _create_user()

    async with make_async_client(app) as client:
        r = await client.post(
            "/api/session",
            json={"credential": "login-user", "password": "wrong"},
            headers=csrf_headers(),
        )

    assert r.status_code == 401
    body = r.json()
    assert body["title"] == "Login failed"
    assert body["errors"] == {"credential": "The provided credentials were invalid."}


@pytest.mark.anyio
async def test_restore_session_user_from_cookie(db: None):
    user_id = await _create_user()
    token = make_session_token(user_id)

    async with make_async_client(app) as client:
        r = await client.get(
            "/api/session", headers={"cookie": f"{settings.session_cookie_name}={token}"}
        )

    assert r.status_code == 200
    assert r.json()["user"]["username"] == "login-user"


@pytest.mark.anyio
async def test_restore_session_without_cookie_returns_null_user(db: None):
    async with make_async_client(app) as client:
        r = await client.get("/api/session")

    assert r.status_code == 200
    assert r.json() == {"user": None}


@pytest.mark.anyio
async def test_invalid_session_cookie_is_cleared(db: None):
    async with make_async_client(app) as client:
        r = await client.get(
            "/api/session", headers={"cookie": f"{settings.session_cookie_name}=v1.1.2.3.bad"}
        )

    assert r.status_code == 200
    assert r.json() == {"user": None}
    cleared = response_cookies(r)[settings.session_cookie_name]
    assert cleared.value == ""


@pytest.mark.anyio
async def test_logout_clears_token_cookie(db: None):
    user_id = await _create_user()
    token = make_session_token(user_id)

    async with make_async_client(app) as client:
        r = await client.delete(
            "/api/session",
            headers=csrf_headers({settings.session_cookie_name: token}),
        )

    assert r.status_code == 200
    assert r.json() == {"message": "success"}
    assert response_cookies(r)[settings.session_cookie_name].value == ""
