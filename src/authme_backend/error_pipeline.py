"""Error pipeline: one uniform JSON error contract for every failed request.

Every failure reaching the application boundary flows through the same chain:

    not-found synthesis (no route matched) or a raised exception
      -> failure_from_exception   (adapt anything raised into a Failure)
      -> normalize_failure        (validation failures get a field -> message map)
      -> ResponseFormatter        (terminal: log, then {title, message, errors, stack})

Successful handlers never touch this module.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Callable, Sequence
from http import HTTPStatus
from typing import cast

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from authme_backend.errors import Failure, FieldError

logger = logging.getLogger(__name__)

NOT_FOUND_TITLE = "Resource Not Found"
NOT_FOUND_MESSAGE = "The requested resource couldn't be found."
VALIDATION_TITLE = "Validation error"
DEFAULT_TITLE = "Server Error"
DEFAULT_STATUS = 500

Stage = Callable[[Failure], Failure]


def synthesize_not_found() -> Failure:
    return Failure(
        kind="not_found",
        status=404,
        title=NOT_FOUND_TITLE,
        message=NOT_FOUND_MESSAGE,
        errors=[NOT_FOUND_MESSAGE],
    )


def normalize_failure(failure: Failure) -> Failure:
    """Rewrite validation failures into ``{field path: message}``.

    Later entries for the same path overwrite earlier ones. Any other kind is
    forwarded untouched.
    """

    if failure.kind != "validation":
        return failure

    errors: dict[str, str] = {}
    for field_error in failure.field_errors:
        errors[field_error.path] = field_error.message
    failure.title = VALIDATION_TITLE
    failure.errors = errors
    return failure


class ResponseFormatter:
    """Terminal stage. Never forwards; always yields exactly one response."""

    def __init__(self, *, is_production: bool) -> None:
        self.is_production = is_production

    def render_body(self, failure: Failure) -> dict[str, object]:
        return {
            "title": failure.title or DEFAULT_TITLE,
            "message": failure.message,
            "errors": failure.errors,
            # Traces are for local debugging only; never ship them from production.
            "stack": None if self.is_production else failure.stack,
        }

    def __call__(self, failure: Failure) -> JSONResponse:
        status_code = failure.status or DEFAULT_STATUS
        body = self.render_body(failure)
        level = logging.ERROR if status_code >= 500 else logging.WARNING
        logger.log(
            level,
            "%s status=%s title=%s message=%s\n%s",
            failure.kind,
            status_code,
            body["title"],
            failure.message,
            failure.stack or "(no stack)",
        )
        return JSONResponse(status_code=status_code, content=body)


class ErrorPipeline:
    def __init__(
        self,
        *,
        formatter: ResponseFormatter,
        stages: Sequence[Stage] = (normalize_failure,),
    ) -> None:
        self.stages: tuple[Stage, ...] = tuple(stages)
        self.formatter = formatter

    def run(self, failure: Failure) -> Failure:
        for stage in self.stages:
            failure = stage(failure)
        return failure

    def respond(self, failure: Failure) -> JSONResponse:
        return self.formatter(self.run(failure))


def format_stack(exc: BaseException) -> str | None:
    if exc.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def _status_phrase(status_code: int) -> str | None:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return None


def _field_path(loc: Sequence[object]) -> str:
    parts = [str(p) for p in loc]
    if len(parts) > 1 and parts[0] in {"body", "query", "path", "header", "cookie"}:
        parts = parts[1:]
    return ".".join(parts)


def failure_from_exception(exc: Exception) -> Failure:
    """Adapt anything raised during dispatch into a Failure."""

    if isinstance(exc, Failure):
        failure = exc
    elif isinstance(exc, RequestValidationError):
        failure = Failure.validation(
            [
                FieldError(
                    path=_field_path(cast(Sequence[object], err.get("loc", ()))),
                    message=str(err.get("msg", "")),
                )
                for err in cast(Sequence[dict[str, object]], exc.errors())
            ]
        )
    elif isinstance(exc, StarletteHTTPException):
        failure = Failure(
            status=exc.status_code,
            title=_status_phrase(exc.status_code),
            message=str(exc.detail),
        )
    else:
        failure = Failure(message=str(exc) or type(exc).__name__)

    if failure.stack is None:
        failure.stack = format_stack(exc)
    return failure


def register_error_handlers(app: FastAPI, pipeline: ErrorPipeline) -> None:
    """Route every failure kind through ``pipeline``."""

    async def _handle(_request: Request, exc: Exception) -> JSONResponse:
        return pipeline.respond(failure_from_exception(exc))

    app.add_exception_handler(Failure, _handle)
    app.add_exception_handler(StarletteHTTPException, _handle)
    app.add_exception_handler(RequestValidationError, _handle)
    # Fallback for exceptions raised outside UnhandledErrorMiddleware.
    app.add_exception_handler(Exception, _handle)


def add_not_found_fallback(app: FastAPI) -> None:
    """Catch-all route; must be added after every real route."""

    @app.api_route(
        "/{path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
        include_in_schema=False,
    )
    async def _not_found(path: str) -> None:  # noqa: ARG001
        raise synthesize_not_found()


class UnhandledErrorMiddleware:
    """Renders unexpected exceptions inside the middleware chain.

    Must be the innermost middleware so the outer ones (request id, security
    headers, CORS, CSRF cookies) still decorate the 500 response.
    """

    def __init__(self, app: ASGIApp, *, pipeline: ErrorPipeline) -> None:
        self.app: ASGIApp = app
        self.pipeline = pipeline

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message.get("type") == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                raise
            response = self.pipeline.respond(failure_from_exception(exc))
            await response(scope, receive, send)
