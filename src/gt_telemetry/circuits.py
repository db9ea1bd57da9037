"""Circuit catalogue and location of the car on it.

The catalogue document has two sections.  ``coordinates`` maps quantised
track coordinates that identify a single circuit to that circuit's id, and
``circuits`` maps ids to their records, each carrying the quantised start
line.  Positions reported in telemetry are quantised with the same
resolutions before being looked up.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from .data import CIRCUITS_RESOURCE
from .errors import CatalogueError
from .models import Coordinate, CoordinateKind, QuantisedCoordinate

__all__ = [
    "Circuit",
    "CircuitCatalogue",
    "START_LINE_RESOLUTION",
    "TRACK_RESOLUTION",
    "resolution_for",
]


logger = logging.getLogger(__name__)


START_LINE_RESOLUTION = (32, 4, 32)
TRACK_RESOLUTION = (64, 8, 64)


def resolution_for(kind: CoordinateKind) -> tuple[int, int, int]:
    if kind is CoordinateKind.START_LINE:
        return START_LINE_RESOLUTION
    return TRACK_RESOLUTION


def _lookup_key(coordinate: Coordinate, resolution: tuple[int, int, int]) -> Optional[str]:
    # Positions that cannot be quantised into the i16 key space match nothing.
    if not coordinate.is_finite:
        return None
    quantised = coordinate.quantise(resolution)
    if not quantised.in_range:
        return None
    return quantised.key


def _normalise_keys(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {str(key).replace("_", "").lower(): value for key, value in payload.items()}


@dataclass(frozen=True, slots=True)
class Circuit:
    id: str
    name: str = ""
    variation: str = ""
    country: str = ""
    default: bool = False
    length: int = 0
    start_line: QuantisedCoordinate = QuantisedCoordinate(0, 0, 0)
    unique_coordinates: int = 0

    @classmethod
    def from_mapping(cls, circuit_id: str, payload: Mapping[str, Any]) -> "Circuit":
        record = _normalise_keys(payload)
        start = record.get("startline") or {}
        if not isinstance(start, Mapping):
            raise CatalogueError(
                f"circuit {circuit_id!r} has a malformed start line", context={"circuit": circuit_id}
            )
        start = _normalise_keys(start)
        return cls(
            id=str(record.get("id") or circuit_id),
            name=str(record.get("name", "")),
            variation=str(record.get("variation", "")),
            country=str(record.get("country", record.get("region", ""))),
            default=bool(record.get("default", False)),
            length=int(record.get("length", 0)),
            start_line=QuantisedCoordinate(
                int(start.get("x", 0)), int(start.get("y", 0)), int(start.get("z", 0))
            ),
            unique_coordinates=int(record.get("uniquecoordinates", 0)),
        )


class CircuitCatalogue:
    """Immutable circuit inventory with coordinate lookups."""

    def __init__(self, circuits: Mapping[str, Circuit], coordinates: Mapping[str, str]) -> None:
        self._circuits = dict(circuits)
        self._coordinates = dict(coordinates)
        self._start_lines: dict[str, list[str]] = {}
        for circuit_id in sorted(self._circuits):
            key = self._circuits[circuit_id].start_line.key
            self._start_lines.setdefault(key, []).append(circuit_id)

    @classmethod
    def from_json(cls, document: str | bytes | None = None) -> "CircuitCatalogue":
        """Parse a catalogue document; ``None`` loads the embedded inventory."""

        if document is None:
            document = CIRCUITS_RESOURCE.read_bytes()
        try:
            payload = json.loads(document)
        except (TypeError, ValueError) as exc:
            raise CatalogueError(f"unable to parse circuit inventory JSON: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise CatalogueError("circuit inventory must be a JSON object")

        raw_circuits = payload.get("circuits") or {}
        raw_coordinates = payload.get("coordinates") or {}
        if not isinstance(raw_circuits, Mapping) or not isinstance(raw_coordinates, Mapping):
            raise CatalogueError("circuit inventory sections must be JSON objects")

        circuits: dict[str, Circuit] = {}
        for circuit_id, entry in raw_circuits.items():
            if not isinstance(entry, Mapping):
                raise CatalogueError(
                    f"circuit inventory entry {circuit_id!r} is not an object",
                    context={"circuit": circuit_id},
                )
            try:
                circuits[circuit_id] = Circuit.from_mapping(circuit_id, entry)
            except (TypeError, ValueError) as exc:
                raise CatalogueError(
                    f"malformed circuit inventory entry {circuit_id!r}: {exc}",
                    context={"circuit": circuit_id},
                ) from exc

        coordinates: dict[str, str] = {}
        for key, value in raw_coordinates.items():
            # Older inventories list every circuit sharing a coordinate.
            if isinstance(value, list):
                if len(value) != 1:
                    continue
                value = value[0]
            coordinates[key] = str(value)

        logger.debug(
            "Circuit inventory loaded.",
            extra={
                "event": "circuits.loaded",
                "circuits": len(circuits),
                "coordinates": len(coordinates),
            },
        )
        return cls(circuits, coordinates)

    @classmethod
    def load(cls, path: Optional[str | os.PathLike[str]] = None) -> "CircuitCatalogue":
        if path is None:
            return cls.from_json()
        try:
            document = Path(path).read_bytes()
        except OSError as exc:
            raise CatalogueError(
                f"unable to read circuit inventory {path}: {exc}", context={"path": os.fspath(path)}
            ) from exc
        return cls.from_json(document)

    def locate(
        self, coordinate: Coordinate, kind: CoordinateKind = CoordinateKind.TRACK
    ) -> Optional[str]:
        """Return the id of the circuit identified by ``coordinate``, if any.

        Start lines shared by several circuit layouts identify none of them.
        """

        key = _lookup_key(coordinate, resolution_for(kind))
        if key is None:
            return None
        if kind is CoordinateKind.START_LINE:
            candidates = self._start_lines.get(key, [])
            return candidates[0] if len(candidates) == 1 else None
        return self._coordinates.get(key)

    def circuits_at_start_line(self, coordinate: Coordinate) -> list[str]:
        key = _lookup_key(coordinate, START_LINE_RESOLUTION)
        if key is None:
            return []
        return list(self._start_lines.get(key, []))

    def by_id(self, circuit_id: str) -> Optional[Circuit]:
        return self._circuits.get(circuit_id)

    def all_ids(self) -> list[str]:
        return sorted(self._circuits)

    def in_country(self, country: str) -> list[Circuit]:
        wanted = country.casefold()
        return [
            self._circuits[circuit_id]
            for circuit_id in self.all_ids()
            if self._circuits[circuit_id].country.casefold() == wanted
        ]

    def __len__(self) -> int:
        return len(self._circuits)

    def __contains__(self, circuit_id: object) -> bool:
        return circuit_id in self._circuits
