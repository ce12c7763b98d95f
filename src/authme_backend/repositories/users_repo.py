from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError
from sqlmodel import or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from authme_backend.errors import Failure, FieldError
from authme_backend.models import User, utc_now

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

USERNAME_MIN_LEN = 4
USERNAME_MAX_LEN = 30
EMAIL_MIN_LEN = 3
EMAIL_MAX_LEN = 256


def _check_fields(
    *, email: str, username: str, first_name: str, last_name: str, hashed_password: str
) -> list[FieldError]:
    errors: list[FieldError] = []

    if not email:
        errors.append(FieldError("email", "Email is required"))
    elif not (EMAIL_MIN_LEN <= len(email) <= EMAIL_MAX_LEN) or not _EMAIL_RE.match(email):
        errors.append(FieldError("email", "Invalid email"))

    if not username:
        errors.append(FieldError("username", "Username is required"))
    elif not (USERNAME_MIN_LEN <= len(username) <= USERNAME_MAX_LEN):
        errors.append(
            FieldError(
                "username",
                f"Username must be {USERNAME_MIN_LEN} to {USERNAME_MAX_LEN} characters",
            )
        )
    if username and _EMAIL_RE.match(username):
        errors.append(FieldError("username", "Username cannot be an email"))

    if not first_name:
        errors.append(FieldError("firstName", "First Name is required"))
    if not last_name:
        errors.append(FieldError("lastName", "Last Name is required"))
    if not hashed_password:
        errors.append(FieldError("password", "Password is required"))
    return errors


async def _uniqueness_errors(session: AsyncSession, *, email: str, username: str) -> list[FieldError]:
    rows = (
        await session.exec(
            select(User).where(or_(User.email == email, User.username == username))
        )
    ).all()
    errors: list[FieldError] = []
    if any(u.email == email for u in rows):
        errors.append(FieldError("email", "email must be unique"))
    if any(u.username == username for u in rows):
        errors.append(FieldError("username", "username must be unique"))
    return errors


async def get_user_by_credential(session: AsyncSession, credential: str) -> User | None:
    """Look a user up by username or email."""

    stmt = select(User).where(or_(User.username == credential, User.email == credential))
    return (await session.exec(stmt)).first()


async def create_user(
    session: AsyncSession,
    *,
    email: str,
    username: str,
    first_name: str,
    last_name: str,
    hashed_password: str,
) -> User:
    """Insert a user; raises a validation Failure listing every offending field."""

    email = email.strip()
    username = username.strip()
    errors = _check_fields(
        email=email,
        username=username,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        hashed_password=hashed_password,
    )
    if errors:
        raise Failure.validation(errors)

    errors = await _uniqueness_errors(session, email=email, username=username)
    if errors:
        raise Failure.validation(errors)

    now = utc_now()
    user = User(
        email=email,
        username=username,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        hashed_password=hashed_password,
        created_at=now,
        updated_at=now,
    )
    try:
        session.add(user)
        await session.commit()
    except IntegrityError:
        # Lost a race with a concurrent sign-up.
        await session.rollback()
        errors = await _uniqueness_errors(session, email=email, username=username)
        if not errors:
            raise
        logger.info("unique constraint violation on sign-up username=%s", username)
        raise Failure.validation(errors)

    await session.refresh(user)
    return user
