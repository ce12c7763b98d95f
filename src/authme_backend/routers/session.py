from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlmodel.ext.asyncio.session import AsyncSession

from authme_backend.auth import clear_token_cookie, get_app_settings, restore_user, set_token_cookie
from authme_backend.config import Settings
from authme_backend.db import get_session
from authme_backend.errors import Failure
from authme_backend.models import User
from authme_backend.repositories import users_repo
from authme_backend.schemas import ErrorResponse, LoginRequest, MessageResponse, UserResponse
from authme_backend.security import verify_password

router = APIRouter(
    prefix="/session",
    tags=["session"],
    responses={401: {"model": ErrorResponse}},
)


@router.get("", response_model=UserResponse)
async def get_session_user(user: User | None = Depends(restore_user)):
    return {"user": user.to_safe_dict() if user is not None else None}


@router.post("", response_model=UserResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
    app_settings: Settings = Depends(get_app_settings),
):
    user = await users_repo.get_user_by_credential(session, payload.credential.strip())
    if user is None or not verify_password(payload.password, user.hashed_password):
        raise Failure(
            status=401,
            title="Login failed",
            message="Login failed",
            errors={"credential": "The provided credentials were invalid."},
        )

    set_token_cookie(response, user, app_settings)
    return {"user": user.to_safe_dict()}


@router.delete("", response_model=MessageResponse)
async def logout(response: Response, app_settings: Settings = Depends(get_app_settings)):
    clear_token_cookie(response, app_settings)
    return {"message": "success"}
