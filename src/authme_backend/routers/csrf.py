from __future__ import annotations

from fastapi import APIRouter, Request

from authme_backend.schemas import CsrfRestoreResponse

router = APIRouter(prefix="/csrf", tags=["csrf"])


@router.get("/restore", response_model=CsrfRestoreResponse)
async def restore_csrf_token(request: Request):
    # CsrfMiddleware has already issued the XSRF-TOKEN cookie for this GET.
    return {"XSRF-Token": request.state.csrf_token}
