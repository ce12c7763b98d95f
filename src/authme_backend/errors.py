"""Failure: the transient error value carried through the error pipeline.

A Failure is raised by route handlers and collaborators (or synthesized when
no route matches), rewritten in place by pipeline stages and serialized into
exactly one JSON response. The ``kind`` discriminant is set by whoever raises
it; pipeline stages branch on ``kind`` instead of on exception classes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence, Union

FailureKind = Literal["not_found", "validation", "unclassified"]

FailureErrors = Union[list[str], dict[str, str]]


@dataclass(frozen=True)
class FieldError:
    path: str
    message: str


class Failure(Exception):
    def __init__(
        self,
        *,
        kind: FailureKind = "unclassified",
        status: int | None = None,
        title: str | None = None,
        message: str | None = None,
        errors: FailureErrors | None = None,
        field_errors: Sequence[FieldError] = (),
        stack: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind: FailureKind = kind
        self.status = status
        self.title = title
        self.message = message
        self.errors = errors
        self.field_errors: tuple[FieldError, ...] = tuple(field_errors)
        self.stack = stack

    @classmethod
    def validation(cls, field_errors: Sequence[FieldError], *, status: int = 400) -> "Failure":
        """Structured validation failure: one entry per offending field."""

        entries = tuple(field_errors)
        message = ",\n".join(f"Validation error: {fe.message}" for fe in entries)
        return cls(
            kind="validation",
            status=status,
            message=message or "Validation error",
            field_errors=entries,
        )

    def __repr__(self) -> str:
        return (
            f"Failure(kind={self.kind!r}, status={self.status!r}, "
            f"title={self.title!r}, message={self.message!r})"
        )
