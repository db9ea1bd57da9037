"""Logging configuration shared by the client and the command line."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from pathlib import Path
import sys
from typing import Any, Mapping, Optional

__all__ = ["JsonFormatter", "PACKAGE_LOGGER", "TRACE", "resolve_level", "setup_logging"]


PACKAGE_LOGGER = "gt_telemetry"
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_LEVELS: Mapping[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "critical": logging.CRITICAL,
}
# Above CRITICAL so that nothing is emitted.
_DISABLED = logging.CRITICAL + 10

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
    | {"message", "asctime", "taskName"}
)
_HANDLER_MARKER = "_gt_telemetry_handler"


def resolve_level(name: Optional[str | int]) -> int:
    """Map a level name such as ``warn`` or ``off`` to a :mod:`logging` level.

    Unknown names resolve to ``WARNING`` after logging a warning.
    """

    if name is None:
        return logging.WARNING
    if isinstance(name, int):
        return name
    lowered = str(name).strip().lower()
    if lowered == "off":
        return _DISABLED
    try:
        return _LEVELS[lowered]
    except KeyError:
        logging.getLogger(__name__).warning(
            "Unknown log level, setting level to warn.",
            extra={"event": "logging.unknown_level", "log_level": name},
        )
        return logging.WARNING


class JsonFormatter(logging.Formatter):
    """Render records as single-line JSON objects including ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, sort_keys=False)


def _build_handler(output: str) -> logging.Handler:
    if output == "stdout":
        return logging.StreamHandler(sys.stdout)
    if output == "stderr":
        return logging.StreamHandler(sys.stderr)
    path = Path(output).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, encoding="utf-8")


def setup_logging(config: Optional[Mapping[str, Any]] = None) -> logging.Logger:
    """Install a single handler on the package logger.

    ``config`` may carry a ``logging`` table with ``level``, ``output``
    (``stdout``, ``stderr`` or a file path) and ``format`` (``json`` or
    ``text``).  Calling it again replaces the handler installed previously.
    """

    settings: Mapping[str, Any] = {}
    if config:
        nested = config.get("logging")
        settings = nested if isinstance(nested, Mapping) else config
    level = resolve_level(settings.get("level", "warn"))
    output = str(settings.get("output", "stderr"))
    fmt = str(settings.get("format", "json")).lower()

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    handler = _build_handler(output)
    setattr(handler, _HANDLER_MARKER, True)
    if fmt == "text":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
