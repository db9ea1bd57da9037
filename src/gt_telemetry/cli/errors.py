"""Error reporting for the gt-telemetry command line."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..errors import (
    CaptureFormatError,
    CaptureNotFoundError,
    ConfigurationError,
    InvalidSourceError,
    RecordingError,
    TelemetryError,
    normalise_context,
)

__all__ = [
    "CliError",
    "ErrorPayload",
    "build_error_payload",
    "log_cli_error",
]


_CATEGORY_STATUS_CODES: Mapping[str, int] = {
    "runtime": 1,
    "usage": 2,
    "io": 3,
    "not_found": 4,
    "source": 5,
}

_DEFAULT_CATEGORY = "runtime"
_DEFAULT_LOGGER_NAME = "gt_telemetry.cli"


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    """Structured description of a command failure."""

    status_code: int
    category: str
    message: str
    context: Mapping[str, Any]

    def as_dict(self) -> Mapping[str, Any]:
        return {
            "status_code": self.status_code,
            "category": self.category,
            "message": self.message,
            "context": dict(self.context),
        }


def build_error_payload(
    message: str,
    *,
    category: str = _DEFAULT_CATEGORY,
    status_code: Optional[int] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> ErrorPayload:
    resolved_category = category or _DEFAULT_CATEGORY
    if status_code is None:
        status_code = _CATEGORY_STATUS_CODES.get(
            resolved_category, _CATEGORY_STATUS_CODES[_DEFAULT_CATEGORY]
        )
    return ErrorPayload(
        status_code=status_code,
        category=resolved_category,
        message=message,
        context=normalise_context(context),
    )


def log_cli_error(
    payload: ErrorPayload,
    *,
    logger: Optional[logging.Logger] = None,
    exc_info: Optional[BaseException] = None,
) -> None:
    """Emit ``payload`` through ``logger.error`` with its structured context."""

    target = logger or logging.getLogger(_DEFAULT_LOGGER_NAME)
    target.error(
        payload.message,
        extra={
            "event": "cli.error",
            "category": payload.category,
            "status_code": payload.status_code,
            "context": dict(payload.context),
        },
        exc_info=exc_info,
    )


def _category_for(exc: TelemetryError) -> str:
    if isinstance(exc, CaptureNotFoundError):
        return "not_found"
    if isinstance(exc, (ConfigurationError, InvalidSourceError, CaptureFormatError)):
        return "usage"
    if isinstance(exc, RecordingError):
        return "io"
    return "source"


class CliError(RuntimeError):
    """Failure of a command, carrying the exit status it maps to."""

    __slots__ = ("category", "status_code", "context", "_payload", "logged")

    def __init__(
        self,
        message: str,
        *,
        category: str = _DEFAULT_CATEGORY,
        status_code: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
        logged: bool = False,
    ) -> None:
        super().__init__(message)
        payload = build_error_payload(
            message, category=category, status_code=status_code, context=context
        )
        self.category = payload.category
        self.status_code = payload.status_code
        self.context = dict(payload.context)
        self._payload = payload
        self.logged = logged

    @property
    def payload(self) -> ErrorPayload:
        return self._payload

    @classmethod
    def from_telemetry_error(cls, exc: TelemetryError) -> "CliError":
        """Wrap a library error, choosing the category from its type."""

        return cls(str(exc), category=_category_for(exc), context=exc.context)
