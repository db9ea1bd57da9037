"""Client options and their loading from ``pyproject.toml``."""

from __future__ import annotations

from collections.abc import Mapping as ABCMapping
from dataclasses import dataclass, fields, replace
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python < 3.11 fallback
    import tomli as tomllib  # type: ignore

from .errors import ConfigurationError
from .models import TelemetryFormat

__all__ = [
    "ClientOptions",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_SOURCE",
    "LOG_LEVEL_NAMES",
    "load_project_config",
]


logger = logging.getLogger(__name__)


_PROJECT_FILENAME = "pyproject.toml"
_TOOL_SECTION = "gt_telemetry"

DEFAULT_SOURCE = "udp://255.255.255.255:33739"
DEFAULT_LOG_LEVEL = "warn"
LOG_LEVEL_NAMES = ("trace", "debug", "info", "warn", "error", "fatal", "panic", "off")

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ConfigurationError(f"option {name!r} expects a boolean, got {value!r}", context={"option": name})


def _optional_path(name: str, value: Any) -> Optional[Path]:
    if value is None or value == "":
        return None
    if isinstance(value, (str, Path)):
        return Path(value).expanduser()
    raise ConfigurationError(f"option {name!r} expects a path, got {value!r}", context={"option": name})


@dataclass(frozen=True)
class ClientOptions:
    """Construction options of :class:`~gt_telemetry.client.TelemetryClient`."""

    source: str = DEFAULT_SOURCE
    format: TelemetryFormat = TelemetryFormat.ADDENDUM2
    log_level: str = DEFAULT_LOG_LEVEL
    stats_enabled: bool = False
    circuit_db: Optional[Path] = None
    vehicle_db: Optional[Path] = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "format", TelemetryFormat.parse(self.format))
        except ValueError as exc:
            raise ConfigurationError(str(exc), context={"option": "format"}) from exc
        if not self.source:
            object.__setattr__(self, "source", DEFAULT_SOURCE)
        level = str(self.log_level or DEFAULT_LOG_LEVEL).strip().lower()
        if level not in LOG_LEVEL_NAMES:
            logger.warning(
                "Unknown log level, setting level to warn.",
                extra={"event": "configuration.unknown_log_level", "log_level": self.log_level},
            )
            level = DEFAULT_LOG_LEVEL
        object.__setattr__(self, "log_level", level)
        object.__setattr__(self, "stats_enabled", _as_bool("stats_enabled", self.stats_enabled))
        object.__setattr__(self, "circuit_db", _optional_path("circuit_db", self.circuit_db))
        object.__setattr__(self, "vehicle_db", _optional_path("vehicle_db", self.vehicle_db))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "ClientOptions":
        """Build options from a mapping, rejecting unknown keys."""

        known = {item.name for item in fields(cls)}
        normalised = {str(key).replace("-", "_"): value for key, value in payload.items()}
        unknown = sorted(set(normalised) - known)
        if unknown:
            raise ConfigurationError(
                f"unknown client option(s): {', '.join(unknown)}",
                context={"options": ",".join(unknown)},
            )
        return cls(**normalised)

    def with_overrides(self, **overrides: Any) -> "ClientOptions":
        supplied = {key: value for key, value in overrides.items() if value is not None}
        if not supplied:
            return self
        known = {item.name for item in fields(self)}
        unknown = sorted(set(supplied) - known)
        if unknown:
            raise ConfigurationError(
                f"unknown client option(s): {', '.join(unknown)}",
                context={"options": ",".join(unknown)},
            )
        return replace(self, **supplied)


def _as_dict(payload: ABCMapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in payload.items():
        result[str(key)] = _as_dict(value) if isinstance(value, ABCMapping) else value
    return result


def _resolve_pyproject_path(candidate: Path) -> Path | None:
    candidate = candidate.expanduser()
    if candidate.name == _PROJECT_FILENAME:
        return candidate
    if candidate.suffix:
        return None
    return candidate / _PROJECT_FILENAME


def load_project_config(path: Path) -> tuple[dict[str, Any], Path] | None:
    """Load the ``[tool.gt_telemetry]`` table from ``pyproject.toml``.

    ``path`` may name the file itself or the directory holding it.  Returns
    ``None`` when no such table exists.
    """

    pyproject_path = _resolve_pyproject_path(Path(path))
    if pyproject_path is None:
        return None
    pyproject_path = pyproject_path.resolve(strict=False)
    if not pyproject_path.exists():
        return None

    try:
        with pyproject_path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(
            f"invalid TOML in {pyproject_path}: {exc}", context={"path": str(pyproject_path)}
        ) from exc

    tool_section = data.get("tool")
    if not isinstance(tool_section, ABCMapping):
        return None
    section = tool_section.get(_TOOL_SECTION)
    if not isinstance(section, ABCMapping):
        return None
    return _as_dict(section), pyproject_path
