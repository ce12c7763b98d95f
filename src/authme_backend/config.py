from __future__ import annotations

from typing import ClassVar, final

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_SESSION_SECRET_PLACEHOLDER = "session_secret_change_me"


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


@final
class Settings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )
    app_name: str = "AuthMe Backend"
    api_prefix: str = "/api"

    # Environment (ENVIRONMENT): development | test | production
    environment: str = "development"

    database_url: str = "sqlite:///./dev.db"
    log_level: str = "INFO"

    # Only honoured outside production; production serves the frontend same-origin.
    cors_allow_origins: str = "*"

    # Session ("token") cookie
    session_secret: str = _SESSION_SECRET_PLACEHOLDER
    session_max_age_seconds: int = 60 * 60 * 24 * 7  # 7 days
    session_cookie_name: str = "token"

    # CSRF (double-submit cookie)
    csrf_secret_cookie_name: str = "_csrf"
    csrf_token_cookie_name: str = "XSRF-TOKEN"
    csrf_header_name: str = "XSRF-Token"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    # Validate production settings early to fail fast on unsafe defaults.
    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":  # pyright: ignore[reportUnusedFunction]
        if not self.is_production:
            return self

        errors: list[str] = []

        secret = self.session_secret.strip()
        if not secret or secret == _SESSION_SECRET_PLACEHOLDER:
            errors.append("SESSION_SECRET must be set in production")

        if self.database_url.strip().startswith("sqlite"):
            errors.append("DATABASE_URL must point at a server database in production")

        if self.cors_allow_origins.strip() in {"", "*"}:
            errors.append("CORS_ALLOW_ORIGINS must list explicit origins (not '*') in production")

        if errors:
            raise ValueError("Invalid production settings: " + "; ".join(errors))
        return self

    def cors_origins_list(self) -> list[str]:
        v = self.cors_allow_origins.strip()
        if not v:
            return []
        if v == "*":
            return ["*"]
        return _split_csv(v)

    def security_warnings(self) -> list[str]:
        warnings: list[str] = []
        if self.session_secret == _SESSION_SECRET_PLACEHOLDER:
            warnings.append("SESSION_SECRET is using placeholder value")
        if not self.is_production:
            warnings.append(
                f"ENVIRONMENT={self.environment!r}: stack traces are included in error responses"
            )
        return warnings


settings = Settings()
