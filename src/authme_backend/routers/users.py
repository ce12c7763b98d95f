from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlmodel.ext.asyncio.session import AsyncSession

from authme_backend.auth import get_app_settings, set_token_cookie
from authme_backend.config import Settings
from authme_backend.db import get_session
from authme_backend.errors import Failure, FieldError
from authme_backend.repositories import users_repo
from authme_backend.schemas import ErrorResponse, SignupRequest, UserResponse
from authme_backend.security import hash_password

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)


@router.post("", response_model=UserResponse)
async def signup(
    payload: SignupRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
    app_settings: Settings = Depends(get_app_settings),
):
    try:
        hashed_password = hash_password(payload.password)
    except ValueError as e:
        raise Failure.validation([FieldError("password", str(e))])

    user = await users_repo.create_user(
        session,
        email=payload.email,
        username=payload.username,
        first_name=payload.first_name,
        last_name=payload.last_name,
        hashed_password=hashed_password,
    )
    set_token_cookie(response, user, app_settings)
    return {"user": user.to_safe_dict()}
