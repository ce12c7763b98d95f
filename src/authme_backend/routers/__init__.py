from __future__ import annotations

from fastapi import APIRouter

from authme_backend.routers import csrf, session, users

api_router = APIRouter()
api_router.include_router(csrf.router)
api_router.include_router(session.router)
api_router.include_router(users.router)

__all__ = ["api_router"]
