from __future__ import annotations

import json
import time
from typing import Any

from fastapi.testclient import TestClient
from sqlmodel import select

from authme_backend.config import settings
from authme_backend.db import init_db, session_scope
from authme_backend.main import app
from authme_backend.models import User


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            if str(k).lower() in {"password", "hashed_password", "xsrf-token"}:
                out[k] = "***REDACTED***"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(obj, list):
        return [_redact(x) for x in obj]
    return obj


def _dump(label: str, resp: Any) -> None:
    print(f"\n== {label} ==")
    print("status:", resp.status_code)
    try:
        print(json.dumps(_redact(resp.json()), ensure_ascii=False, indent=2))
    except ValueError:
        print(resp.text[:1200])


async def main() -> None:
    await init_db()
    print("== Settings ==")
    print("DATABASE_URL:", settings.database_url)
    print("ENVIRONMENT:", settings.environment)

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get(settings.api_prefix + "/csrf/restore")
    _dump("GET /csrf/restore", resp)
    csrf_headers = {settings.csrf_header_name: resp.json()["XSRF-Token"]}

    username = f"smoke{int(time.time())}"
    resp = client.post(
        settings.api_prefix + "/users",
        json={
            "email": f"{username}@example.com",
            "username": username,
            "firstName": "Smoke",
            "lastName": "Test",
            "password": "password",
        },
        headers=csrf_headers,
    )
    _dump("POST /users", resp)

    resp = client.post("/nope", headers=csrf_headers)
    _dump("POST /nope", resp)

    async with session_scope() as session:
        user = (await session.exec(select(User).where(User.username == username))).first()
        print("\n== DB lookup ==")
        if not user:
            print("not found:", username)
        else:
            print(f"found: id={user.id} username={user.username} email={user.email}")


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
