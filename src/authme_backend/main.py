from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authme_backend.config import Settings, settings
from authme_backend.csrf import CsrfMiddleware
from authme_backend.db import dispose_engine_cache
from authme_backend.error_pipeline import (
    ErrorPipeline,
    ResponseFormatter,
    UnhandledErrorMiddleware,
    add_not_found_fallback,
    normalize_failure,
    register_error_handlers,
)
from authme_backend.logging_setup import configure_logging
from authme_backend.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from authme_backend.routers import api_router
from authme_backend.schemas import HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    yield
    # Ensure sqlite/aiosqlite worker threads don't keep the process alive.
    await dispose_engine_cache()


def create_app(app_settings: Settings = settings) -> FastAPI:
    configure_logging(app_settings.log_level)
    for msg in app_settings.security_warnings():
        logger.warning("SECURITY WARNING: %s", msg)

    app = FastAPI(title=app_settings.app_name, lifespan=_lifespan)
    app.state.settings = app_settings

    pipeline = ErrorPipeline(
        stages=(normalize_failure,),
        formatter=ResponseFormatter(is_production=app_settings.is_production),
    )

    # add_middleware wraps: the last one added runs first.
    app.add_middleware(UnhandledErrorMiddleware, pipeline=pipeline)
    app.add_middleware(CsrfMiddleware, pipeline=pipeline, app_settings=app_settings)
    if not app_settings.is_production:
        origins = app_settings.cors_origins_list()
        if origins:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=origins,
                # Credentialed CORS needs an explicit allowlist.
                allow_credentials=origins != ["*"],
                allow_methods=["*"],
                allow_headers=["*"],
            )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/health", response_model=HealthResponse)
    def health():
        return {"ok": True}

    app.include_router(api_router, prefix=app_settings.api_prefix)

    register_error_handlers(app, pipeline)
    add_not_found_fallback(app)
    return app


app = create_app()
