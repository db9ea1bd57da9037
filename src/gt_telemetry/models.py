"""Value types shared by the telemetry sources, decoder and catalogues."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Callable, Iterator

__all__ = [
    "COORDINATE_MAX",
    "COORDINATE_MIN",
    "CoordinateKind",
    "Coordinate",
    "CornerSet",
    "GameState",
    "QuantisedCoordinate",
    "RaceType",
    "RotationalEnvelope",
    "TelemetryFormat",
    "TranslationalEnvelope",
    "Vector",
    "quantise",
]


class TelemetryFormat(str, enum.Enum):
    """Packet layouts negotiated through the heartbeat byte."""

    STANDARD = "A"
    ADDENDUM1 = "B"
    ADDENDUM2 = "~"

    @property
    def iv_seed(self) -> int:
        return _IV_SEEDS[self]

    @property
    def packet_size(self) -> int:
        return _PACKET_SIZES[self]

    @property
    def heartbeat(self) -> bytes:
        return self.value.encode("ascii")

    @classmethod
    def parse(cls, value: "TelemetryFormat | str") -> "TelemetryFormat":
        """Resolve a format from its tag (``A``/``B``/``~``) or its name."""

        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text == member.value or text.upper() in (member.name, member.value):
                return member
        raise ValueError(f"Unknown telemetry format {value!r}")


_IV_SEEDS = {
    TelemetryFormat.STANDARD: 0xDEADBEAF,
    TelemetryFormat.ADDENDUM1: 0xDEADBEEF,
    TelemetryFormat.ADDENDUM2: 0x55FABB4F,
}

_PACKET_SIZES = {
    TelemetryFormat.STANDARD: 296,
    TelemetryFormat.ADDENDUM1: 316,
    TelemetryFormat.ADDENDUM2: 344,
}


class GameState(enum.Enum):
    UNKNOWN = 0
    MAIN_MENU = 1
    RACE_MENU = 2
    LIVE = 3
    REPLAY = 4


class RaceType(enum.Enum):
    UNKNOWN = 0
    SPRINT = 1
    ENDURANCE = 2
    TIME_TRIAL = 3


class CoordinateKind(enum.Enum):
    START_LINE = "start_line"
    TRACK = "track"


COORDINATE_MIN = -(2**15)
COORDINATE_MAX = 2**15 - 1


def quantise(value: float, resolution: int) -> int:
    """Reduce ``value`` to a multiple of ``resolution``, truncating toward zero."""

    return int(value / resolution) * resolution


@dataclass(frozen=True, slots=True)
class QuantisedCoordinate:
    """Reduced precision position used as a circuit lookup key."""

    x: int
    y: int
    z: int

    @property
    def key(self) -> str:
        return f"x:{self.x},y:{self.y},z:{self.z}"

    @classmethod
    def from_key(cls, key: str) -> "QuantisedCoordinate":
        axes: dict[str, int] = {}
        for part in key.split(","):
            name, _, raw = part.partition(":")
            axes[name.strip()] = int(raw)
        try:
            return cls(axes["x"], axes["y"], axes["z"])
        except KeyError as exc:
            raise ValueError(f"Malformed coordinate key {key!r}") from exc

    @property
    def in_range(self) -> bool:
        """Whether every axis fits the signed 16-bit range of catalogue keys."""

        return all(COORDINATE_MIN <= axis <= COORDINATE_MAX for axis in (self.x, self.y, self.z))

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True, slots=True)
class Coordinate:
    """Position on the circuit map in metres."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)

    def quantise(self, resolution: tuple[int, int, int]) -> QuantisedCoordinate:
        res_x, res_y, res_z = resolution
        return QuantisedCoordinate(
            quantise(self.x, res_x),
            quantise(self.y, res_y),
            quantise(self.z, res_z),
        )


@dataclass(frozen=True, slots=True)
class Vector:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass(frozen=True, slots=True)
class RotationalEnvelope:
    """Body orientation, each axis normalised to ``[-1, 1]``."""

    pitch: float = 0.0
    yaw: float = 0.0
    roll: float = 0.0


@dataclass(frozen=True, slots=True)
class TranslationalEnvelope:
    """Body acceleration along the lateral, vertical and longitudinal axes."""

    sway: float = 0.0
    heave: float = 0.0
    surge: float = 0.0


@dataclass(frozen=True, slots=True)
class CornerSet:
    """Per-wheel values ordered front-left, front-right, rear-left, rear-right."""

    front_left: float = 0.0
    front_right: float = 0.0
    rear_left: float = 0.0
    rear_right: float = 0.0

    def __iter__(self) -> Iterator[float]:
        yield self.front_left
        yield self.front_right
        yield self.rear_left
        yield self.rear_right

    def map(self, function: Callable[[float], float]) -> "CornerSet":
        return CornerSet(*(function(value) for value in self))
