"""Vehicle catalogue keyed by the car id reported in telemetry frames."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from .data import VEHICLES_RESOURCE
from .errors import CatalogueError, VehicleNotFoundError

__all__ = ["Vehicle", "VehicleCatalogue", "expand_aspiration"]


logger = logging.getLogger(__name__)


_ASPIRATIONS = {
    "EV": "Electric Vehicle",
    "NA": "Naturally Aspirated",
    "TC": "Turbocharged",
    "SC": "Supercharged",
    "TC+SC": "Compound Charged",
}


def expand_aspiration(code: str) -> str:
    """Return the long form of an aspiration code, or the code itself."""

    return _ASPIRATIONS.get(code, code)


@dataclass(frozen=True, slots=True)
class Vehicle:
    """Static vehicle record; dimensions are in millimetres."""

    car_id: int = 0
    manufacturer: str = ""
    model: str = ""
    year: int = 0
    open_cockpit: bool = False
    car_type: str = ""
    category: str = ""
    drivetrain: str = ""
    aspiration: str = ""
    engine_layout: str = ""
    engine_bank_angle: float = 0.0
    engine_crank_plane_angle: float = 0.0
    length: int = 0
    width: int = 0
    height: int = 0
    wheelbase: int = 0
    track_front: int = 0
    track_rear: int = 0

    @property
    def expanded_aspiration(self) -> str:
        return expand_aspiration(self.aspiration)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Vehicle":
        """Build a record from a catalogue entry using its ``CarID`` style keys."""

        def _int(key: str) -> int:
            value = payload.get(key, 0)
            return int(value) if value not in (None, "") else 0

        def _float(key: str) -> float:
            value = payload.get(key, 0.0)
            try:
                return float(value)
            except (TypeError, ValueError):
                return 0.0

        def _str(key: str) -> str:
            value = payload.get(key, "")
            return "" if value is None else str(value)

        return cls(
            car_id=_int("CarID"),
            manufacturer=_str("Manufacturer"),
            model=_str("Model"),
            year=_int("Year"),
            open_cockpit=bool(payload.get("OpenCockpit", False)),
            car_type=_str("CarType"),
            category=_str("Category"),
            drivetrain=_str("Drivetrain"),
            aspiration=_str("Aspiration"),
            engine_layout=_str("EngineLayout"),
            engine_bank_angle=_float("EngineBankAngle"),
            engine_crank_plane_angle=_float("EngineCrankPlaneAngle"),
            length=_int("Length"),
            width=_int("Width"),
            height=_int("Height"),
            wheelbase=_int("Wheelbase"),
            track_front=_int("TrackFront"),
            track_rear=_int("TrackRear"),
        )


class VehicleCatalogue:
    """Immutable lookup of :class:`Vehicle` records by car id."""

    def __init__(self, vehicles: Mapping[int, Vehicle]) -> None:
        self._vehicles = dict(vehicles)

    @classmethod
    def from_json(cls, document: str | bytes | None = None) -> "VehicleCatalogue":
        """Parse a catalogue document; ``None`` loads the embedded inventory."""

        if document is None:
            document = VEHICLES_RESOURCE.read_bytes()
        try:
            payload = json.loads(document)
        except (TypeError, ValueError) as exc:
            raise CatalogueError(f"unable to parse vehicle inventory JSON: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise CatalogueError("vehicle inventory must be a JSON object keyed by car id")

        vehicles: dict[int, Vehicle] = {}
        for key, entry in payload.items():
            if not isinstance(entry, Mapping):
                raise CatalogueError(
                    f"vehicle inventory entry {key!r} is not an object", context={"car_id": key}
                )
            try:
                car_id = int(key)
                vehicle = Vehicle.from_mapping(entry)
            except (TypeError, ValueError) as exc:
                raise CatalogueError(
                    f"malformed vehicle inventory entry {key!r}: {exc}", context={"car_id": key}
                ) from exc
            vehicles[car_id] = vehicle
        logger.debug(
            "Vehicle inventory loaded.",
            extra={"event": "vehicles.loaded", "count": len(vehicles)},
        )
        return cls(vehicles)

    @classmethod
    def load(cls, path: Optional[str | os.PathLike[str]] = None) -> "VehicleCatalogue":
        if path is None:
            return cls.from_json()
        try:
            document = Path(path).read_bytes()
        except OSError as exc:
            raise CatalogueError(
                f"unable to read vehicle inventory {path}: {exc}", context={"path": os.fspath(path)}
            ) from exc
        return cls.from_json(document)

    def get(self, car_id: int) -> Vehicle:
        try:
            return self._vehicles[int(car_id)]
        except KeyError:
            raise VehicleNotFoundError(
                f"no vehicle found with id: {car_id}", context={"car_id": car_id}
            ) from None

    def find(self, car_id: int) -> Optional[Vehicle]:
        return self._vehicles.get(int(car_id))

    def ids(self) -> list[int]:
        return sorted(self._vehicles)

    def __len__(self) -> int:
        return len(self._vehicles)

    def __contains__(self, car_id: object) -> bool:
        return car_id in self._vehicles

    def __iter__(self) -> Iterator[Vehicle]:
        for car_id in self.ids():
            yield self._vehicles[car_id]
