from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    username: str
    password: str = Field(min_length=6, max_length=72)
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")


class LoginRequest(BaseModel):
    credential: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SafeUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    email: str
    username: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")


class UserResponse(BaseModel):
    user: SafeUser | None = None


class CsrfRestoreResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    xsrf_token: str = Field(alias="XSRF-Token")


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    """Error contract shared by every failed request."""

    title: str
    message: str | None = None
    errors: list[str] | dict[str, str] | None = None
    stack: str | None = None
