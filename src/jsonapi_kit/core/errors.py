"""Structured API errors and their JSON:API wire rendering."""

from __future__ import annotations

import traceback
from http import HTTPStatus
from typing import Any

from pydantic import BaseModel, ConfigDict

GENERIC_SERVER_ERROR = "An internal server error occurred"


def status_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


class ErrorObject(BaseModel):
    """A single JSON:API error object."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    status: str
    code: str | None = None
    title: str | None = None
    detail: str | None = None
    source: dict[str, Any] | None = None
    meta: dict[str, Any] | None = None

    def serialize(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class APIError(Exception):
    """The single error type raised by the action pipeline.

    Carries an HTTP status, a human readable message, optional structured
    JSON:API error objects and an ``extra`` bag that ends up in the error
    document's ``meta``.
    """

    def __init__(
        self,
        status: int = 500,
        message: str | None = None,
        errors: list[ErrorObject] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status = status
        self.message = message if message is not None else status_phrase(status)
        self.errors = list(errors or [])
        self.extra = dict(extra or {})
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"APIError({self.status}, {self.message!r})"

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500

    def to_error_pack(self, debug: bool = False) -> ErrorPack:
        return ErrorPack.from_exception(self, debug=debug)


class ErrorPack:
    """Top-level error document: ``{"errors": [...], "meta": {...}}``."""

    def __init__(self, errors: list[ErrorObject], meta: dict[str, Any] | None = None) -> None:
        self.errors = errors
        self.meta = dict(meta or {})

    @classmethod
    def from_exception(cls, error: BaseException, debug: bool = False) -> ErrorPack:
        if isinstance(error, APIError):
            status = error.status
            detail = error.message
            errors = list(error.errors)
            meta = dict(error.extra)
        else:
            status = 500
            detail = str(error) or type(error).__name__
            errors = []
            meta = {}

        if status >= 500 and not debug:
            # Server faults never leak internals outside debug mode.
            detail = GENERIC_SERVER_ERROR
            errors = []
            meta = {}

        if not errors:
            errors = [ErrorObject(status=str(status), title=status_phrase(status), detail=detail)]
        if debug:
            meta["stack"] = traceback.format_exception(type(error), error, error.__traceback__)

        return cls(errors, meta)

    @property
    def status(self) -> int:
        if not self.errors:
            return 500
        return int(self.errors[0].status)

    def serialize(self) -> dict[str, Any]:
        return {
            "errors": [error.serialize() for error in self.errors],
            "meta": self.meta,
        }
