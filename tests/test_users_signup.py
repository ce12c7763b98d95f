from __future__ import annotations

import pytest
from sqlmodel import select

from authme_backend.auth import verify_session_token
from authme_backend.config import settings
from authme_backend.db import session_scope
from authme_backend.errors import Failure
from authme_backend.main import app, create_app
from authme_backend.models import User
from authme_backend.repositories import users_repo
from authme_backend.security import verify_password
from conftest import csrf_headers, make_async_client, production_settings, response_cookies


def _signup_payload(**overrides: str) -> dict[str, str]:
    payload = {
        "email": "demo@example.com",
        "username": "demo-user",
        "firstName": "Demo",
        "lastName": "User",
        "password": "password1",
    }
    payload.update(overrides)
    return payload


@pytest.mark.anyio
async def test_signup_creates_user_and_issues_token_cookie(db: None):
    async with make_async_client(app) as client:
        r = await client.post("/api/users", json=_signup_payload(), headers=csrf_headers())

    assert r.status_code == 200
    user_json = r.json()["user"]
    assert user_json["email"] == "demo@example.com"
    assert user_json["username"] == "demo-user"
    assert user_json["firstName"] == "Demo"
    assert user_json["lastName"] == "User"
    assert isinstance(user_json["id"], int)
    assert "hashedPassword" not in user_json
    assert "hashed_password" not in user_json

    token_cookie = response_cookies(r)[settings.session_cookie_name]
    assert token_cookie["httponly"]
    assert verify_session_token(token_cookie.value) == user_json["id"]

    async with session_scope() as session:
        user = (await session.exec(select(User).where(User.username == "demo-user"))).one()
    assert user.hashed_password != "password1"
    assert verify_password("password1", user.hashed_password)


@pytest.mark.anyio
async def test_signup_on_production_app_issues_secure_token_cookie(db: None):
    prod_settings = production_settings()
    prod_app = create_app(prod_settings)
    async with make_async_client(prod_app) as client:
        r = await client.post("/api/users", json=_signup_payload(), headers=csrf_headers())

    assert r.status_code == 200
    token_cookie = response_cookies(r)[prod_settings.session_cookie_name]
    assert token_cookie["secure"]
    assert token_cookie["httponly"]
    assert token_cookie["samesite"].lower() == "lax"
    # Signed with the app's own secret, not the module-level one.
    assert verify_session_token(token_cookie.value, app_settings=prod_settings) == r.json()["user"]["id"]
    assert verify_session_token(token_cookie.value) is None


@pytest.mark.anyio
async def test_signup_duplicate_reports_each_field(db: None):
    async with make_async_client(app) as client:
        r = await client.post("/api/users", json=_signup_payload(), headers=csrf_headers())
        assert r.status_code == 200

        r = await client.post("/api/users", json=_signup_payload(), headers=csrf_headers())

    assert r.status_code == 400
    body = r.json()
    assert body["title"] == "Validation error"
    assert body["errors"] == {
        "email": "email must be unique",
        "username": "username must be unique",
    }
    assert "Validation error: email must be unique" in body["message"]


@pytest.mark.anyio
async def test_signup_field_checks_last_message_per_field_wins(db: None):
    long_email_username = "a" * 31 + "@example.com"
    async with make_async_client(app) as client:
        r = await client.post(
            "/api/users",
            json=_signup_payload(email="not-an-email", username=long_email_username, firstName=" "),
            headers=csrf_headers(),
        )

    assert r.status_code == 400
    assert r.json()["errors"] == {
        "email": "Invalid email",
        # Length check is reported first; the email check overwrites it.
        "username": "Username cannot be an email",
        "firstName": "First Name is required",
    }


@pytest.mark.anyio
async def test_signup_request_body_validation_goes_through_pipeline(db: None):
    payload = _signup_payload()
    del payload["firstName"]
    payload["password"] = "123"

    async with make_async_client(app) as client:
        r = await client.post("/api/users", json=payload, headers=csrf_headers())

    assert r.status_code == 400
    body = r.json()
    assert body["title"] == "Validation error"
    assert set(body["errors"]) == {"firstName", "password"}
    assert isinstance(body["stack"], str)


@pytest.mark.anyio
async def test_unexpected_error_becomes_server_error(db: None, monkeypatch: pytest.MonkeyPatch):
    async def _boom(*_args: object, **_kwargs: object) -> User:
        raise RuntimeError("database on fire")

    monkeypatch.setattr(users_repo, "create_user", _boom)

    async with make_async_client(app) as client:
        r = await client.post(
            "/api/users",
            json=_signup_payload(),
            headers={**csrf_headers(), "X-Request-Id": "rid-1"},
        )

    assert r.status_code == 500
    body = r.json()
    assert body["title"] == "Server Error"
    assert body["message"] == "database on fire"
    assert body["errors"] is None
    assert "RuntimeError: database on fire" in body["stack"]
    # Outer middleware still decorates the 500.
    assert r.headers["x-request-id"] == "rid-1"
    assert r.headers["cross-origin-resource-policy"] == "cross-origin"
    assert r.headers["x-content-type-options"] == "nosniff"


@pytest.mark.anyio
async def test_create_user_repo_rejects_duplicates_directly(db: None):
    async with session_scope() as session:
        await users_repo.create_user(
            session,
            email="a@example.com",
            username="alpha",
            first_name="A",
            last_name="Z",
            hashed_password="x" * 60,
        )

    async with session_scope() as session:
        with pytest.raises(Failure) as excinfo:
            await users_repo.create_user(
                session,
                email="a@example.com",
                username="beta",
                first_name="B",
                last_name="Y",
                hashed_password="x" * 60,
            )

    failure = excinfo.value
    assert failure.kind == "validation"
    assert failure.status == 400
    assert [(fe.path, fe.message) for fe in failure.field_errors] == [
        ("email", "email must be unique")
    ]
