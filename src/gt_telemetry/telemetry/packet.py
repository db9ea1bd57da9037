"""Decoder for deciphered Gran Turismo telemetry frames.

Frames are position based: every field lives at a fixed offset and all
values are little-endian.  The Standard body spans 296 bytes.  Two optional
tails follow it and their presence is inferred from the frame length only:

* Section B (Addendum1, frames longer than 296 bytes) adds steering wheel
  angle, force feedback and the translational envelope.
* Section ``~`` (Addendum2, frames longer than 316 bytes) adds throttle
  input, brake output, energy recovery and a handful of fields whose meaning
  is not documented yet.

Fields belonging to an absent section read as zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from itertools import islice
import struct
from typing import Iterator

from ..errors import BadMagicError, ShortPacketError, UnexpectedEOFError
from ..models import (
    Coordinate,
    CornerSet,
    RotationalEnvelope,
    TelemetryFormat,
    TranslationalEnvelope,
    Vector,
)
from .cipher import MAGIC

__all__ = [
    "ADDENDUM1_SIZE",
    "ADDENDUM2_SIZE",
    "Flags",
    "GT6_MAGIC",
    "GT7_MAGIC",
    "STANDARD_SIZE",
    "TelemetryPacket",
]


GT7_MAGIC = MAGIC
GT6_MAGIC = 0x47365330
_KNOWN_MAGICS = {GT7_MAGIC: "gt7", GT6_MAGIC: "gt6"}

_STANDARD_STRUCT = struct.Struct(
    "<I"  # magic
    "3f"  # position
    "3f"  # velocity
    "3f"  # rotational envelope
    "f"  # heading
    "3f"  # angular velocity
    "f"  # ride height
    "f"  # engine rpm
    "4x"  # iv, consumed by the cipher
    "f"  # fuel level
    "f"  # fuel capacity
    "f"  # ground speed
    "f"  # manifold pressure
    "f"  # oil pressure
    "f"  # water temperature
    "f"  # oil temperature
    "4f"  # tyre temperature
    "I"  # sequence id
    "h"  # current lap
    "h"  # race laps
    "i"  # best lap time
    "i"  # last lap time
    "I"  # time of day
    "h"  # starting position
    "h"  # race entrants
    "H"  # rev light min
    "H"  # rev light max
    "H"  # calculated max speed
    "H"  # flags
    "B"  # transmission gear nibbles
    "B"  # throttle output
    "B"  # brake input
    "x"
    "3f"  # road plane vector
    "I"  # road plane distance
    "4f"  # wheel radians per second
    "4f"  # tyre radius
    "4f"  # suspension height
    "32x"
    "f"  # clutch actuation
    "f"  # clutch engagement
    "f"  # clutch output rpm
    "f"  # transmission top speed ratio
    "8f"  # gear ratios
    "I"  # vehicle id
)
_ADDENDUM1_STRUCT = struct.Struct("<ff3f")
_ADDENDUM2_STRUCT = struct.Struct("<BBBB4fff")

STANDARD_SIZE = _STANDARD_STRUCT.size
ADDENDUM1_SIZE = STANDARD_SIZE + _ADDENDUM1_STRUCT.size
ADDENDUM2_SIZE = ADDENDUM1_SIZE + _ADDENDUM2_STRUCT.size

_FLAG_NAMES = (
    "live",
    "paused",
    "loading",
    "in_gear",
    "has_turbo",
    "rev_limiter",
    "handbrake",
    "headlights",
    "high_beam",
    "low_beam",
    "asm",
    "tcs",
    "flag13",
    "flag14",
    "flag15",
    "flag16",
)


@dataclass(frozen=True, slots=True)
class Flags:
    """Status bits of the flags word, least significant bit first."""

    live: bool = False
    paused: bool = False
    loading: bool = False
    in_gear: bool = False
    has_turbo: bool = False
    rev_limiter: bool = False
    handbrake: bool = False
    headlights: bool = False
    high_beam: bool = False
    low_beam: bool = False
    asm: bool = False
    tcs: bool = False
    flag13: bool = False
    flag14: bool = False
    flag15: bool = False
    flag16: bool = False

    @classmethod
    def from_bits(cls, value: int) -> "Flags":
        return cls(*(bool(value >> bit & 1) for bit in range(len(_FLAG_NAMES))))

    def to_bits(self) -> int:
        bits = 0
        for bit, name in enumerate(_FLAG_NAMES):
            if getattr(self, name):
                bits |= 1 << bit
        return bits


def _take(values: Iterator, count: int) -> tuple:
    return tuple(islice(values, count))


@dataclass(frozen=True, slots=True)
class TelemetryPacket:
    """Immutable snapshot of one decoded telemetry frame."""

    magic: int = 0
    position: Coordinate = field(default_factory=Coordinate)
    velocity: Vector = field(default_factory=Vector)
    rotation: RotationalEnvelope = field(default_factory=RotationalEnvelope)
    heading: float = 0.0
    angular_velocity: Vector = field(default_factory=Vector)
    ride_height: float = 0.0
    engine_rpm: float = 0.0
    fuel_level: float = 0.0
    fuel_capacity: float = 0.0
    ground_speed: float = 0.0
    manifold_pressure: float = 0.0
    oil_pressure: float = 0.0
    water_temperature: float = 0.0
    oil_temperature: float = 0.0
    tyre_temperature: CornerSet = field(default_factory=CornerSet)
    sequence_id: int = 0
    current_lap: int = 0
    race_laps: int = 0
    best_lap_time: int = 0
    last_lap_time: int = 0
    time_of_day: int = 0
    starting_position: int = 0
    race_entrants: int = 0
    rev_light_min: int = 0
    rev_light_max: int = 0
    calculated_max_speed: int = 0
    flags: Flags = field(default_factory=Flags)
    current_gear: int = 0
    suggested_gear: int = 0
    throttle_output: int = 0
    brake_input: int = 0
    road_plane: Vector = field(default_factory=Vector)
    road_plane_distance: int = 0
    wheel_radians_per_second: CornerSet = field(default_factory=CornerSet)
    tyre_radius: CornerSet = field(default_factory=CornerSet)
    suspension_height: CornerSet = field(default_factory=CornerSet)
    clutch_actuation: float = 0.0
    clutch_engagement: float = 0.0
    clutch_output_rpm: float = 0.0
    transmission_top_speed_ratio: float = 0.0
    gear_ratios: tuple[float, ...] = (0.0,) * 8
    vehicle_id: int = 0
    # Section B
    steering_wheel_angle: float = 0.0
    steering_wheel_force_feedback: float = 0.0
    translation: TranslationalEnvelope = field(default_factory=TranslationalEnvelope)
    # Section ~
    throttle_input: int = 0
    brake_output: int = 0
    unknown_0x13e: int = 0
    unknown_0x13f: int = 0
    torque_vectoring: CornerSet = field(default_factory=CornerSet)
    energy_recovery: float = 0.0
    unknown_0x154: float = 0.0
    packet_size: int = 0
    has_addendum1: bool = False
    has_addendum2: bool = False

    @classmethod
    def empty(cls) -> "TelemetryPacket":
        """Snapshot published before the first frame arrives."""

        return cls()

    @property
    def telemetry_format(self) -> TelemetryFormat:
        if self.has_addendum2:
            return TelemetryFormat.ADDENDUM2
        if self.has_addendum1:
            return TelemetryFormat.ADDENDUM1
        return TelemetryFormat.STANDARD

    @property
    def game_version(self) -> str:
        return _KNOWN_MAGICS.get(self.magic, "unknown")

    def as_dict(self) -> dict[str, object]:
        return {item.name: getattr(self, item.name) for item in fields(self)}

    @classmethod
    def from_bytes(cls, payload: bytes) -> "TelemetryPacket":
        """Decode a magic-prefixed plaintext frame."""

        length = len(payload)
        if length < 4:
            raise ShortPacketError(
                f"telemetry frame too small: {length} bytes (expected {STANDARD_SIZE})",
                context={"length": length},
            )
        magic = struct.unpack_from("<I", payload)[0]
        if magic not in _KNOWN_MAGICS:
            raise BadMagicError(
                f"unknown telemetry magic {magic:#010x}",
                context={"magic": magic, "length": length},
            )
        if length < STANDARD_SIZE:
            raise ShortPacketError(
                f"telemetry frame too small: {length} bytes (expected {STANDARD_SIZE})",
                context={"length": length},
            )

        values = iter(_STANDARD_STRUCT.unpack_from(payload))
        next(values)
        position = Coordinate(*_take(values, 3))
        velocity = Vector(*_take(values, 3))
        rotation = RotationalEnvelope(*_take(values, 3))
        heading = next(values)
        angular_velocity = Vector(*_take(values, 3))
        (
            ride_height,
            engine_rpm,
            fuel_level,
            fuel_capacity,
            ground_speed,
            manifold_pressure,
            oil_pressure,
            water_temperature,
            oil_temperature,
        ) = _take(values, 9)
        tyre_temperature = CornerSet(*_take(values, 4))
        (
            sequence_id,
            current_lap,
            race_laps,
            best_lap_time,
            last_lap_time,
            time_of_day,
            starting_position,
            race_entrants,
            rev_light_min,
            rev_light_max,
            calculated_max_speed,
            flag_bits,
            gear_byte,
            throttle_output,
            brake_input,
        ) = _take(values, 15)
        road_plane = Vector(*_take(values, 3))
        road_plane_distance = next(values)
        wheel_radians_per_second = CornerSet(*_take(values, 4))
        tyre_radius = CornerSet(*_take(values, 4))
        suspension_height = CornerSet(*_take(values, 4))
        (
            clutch_actuation,
            clutch_engagement,
            clutch_output_rpm,
            transmission_top_speed_ratio,
        ) = _take(values, 4)
        gear_ratios = _take(values, 8)
        vehicle_id = next(values)

        extras: dict[str, object] = {}
        if length > STANDARD_SIZE:
            extras.update(_decode_addendum1(payload))
        if length > ADDENDUM1_SIZE:
            extras.update(_decode_addendum2(payload))

        return cls(
            magic=magic,
            position=position,
            velocity=velocity,
            rotation=rotation,
            heading=heading,
            angular_velocity=angular_velocity,
            ride_height=ride_height,
            engine_rpm=engine_rpm,
            fuel_level=fuel_level,
            fuel_capacity=fuel_capacity,
            ground_speed=ground_speed,
            manifold_pressure=manifold_pressure,
            oil_pressure=oil_pressure,
            water_temperature=water_temperature,
            oil_temperature=oil_temperature,
            tyre_temperature=tyre_temperature,
            sequence_id=sequence_id,
            current_lap=current_lap,
            race_laps=race_laps,
            best_lap_time=best_lap_time,
            last_lap_time=last_lap_time,
            time_of_day=time_of_day,
            starting_position=starting_position,
            race_entrants=race_entrants,
            rev_light_min=rev_light_min,
            rev_light_max=rev_light_max,
            calculated_max_speed=calculated_max_speed,
            flags=Flags.from_bits(flag_bits),
            current_gear=gear_byte & 0x0F,
            suggested_gear=gear_byte >> 4 & 0x0F,
            throttle_output=throttle_output,
            brake_input=brake_input,
            road_plane=road_plane,
            road_plane_distance=road_plane_distance,
            wheel_radians_per_second=wheel_radians_per_second,
            tyre_radius=tyre_radius,
            suspension_height=suspension_height,
            clutch_actuation=clutch_actuation,
            clutch_engagement=clutch_engagement,
            clutch_output_rpm=clutch_output_rpm,
            transmission_top_speed_ratio=transmission_top_speed_ratio,
            gear_ratios=gear_ratios,
            vehicle_id=vehicle_id,
            packet_size=length,
            has_addendum1=length > STANDARD_SIZE,
            has_addendum2=length > ADDENDUM1_SIZE,
            **extras,
        )


def _require(payload: bytes, end: int, section: str) -> None:
    if len(payload) < end:
        raise UnexpectedEOFError(
            f"telemetry frame ends inside section {section}: {len(payload)} < {end} bytes",
            context={"length": len(payload), "section": section},
        )


def _decode_addendum1(payload: bytes) -> dict[str, object]:
    _require(payload, ADDENDUM1_SIZE, "B")
    angle, force_feedback, sway, heave, surge = _ADDENDUM1_STRUCT.unpack_from(
        payload, STANDARD_SIZE
    )
    return {
        "steering_wheel_angle": angle,
        "steering_wheel_force_feedback": force_feedback,
        "translation": TranslationalEnvelope(sway, heave, surge),
    }


def _decode_addendum2(payload: bytes) -> dict[str, object]:
    _require(payload, ADDENDUM2_SIZE, "~")
    values = iter(_ADDENDUM2_STRUCT.unpack_from(payload, ADDENDUM1_SIZE))
    throttle_input, brake_output, unknown_0x13e, unknown_0x13f = _take(values, 4)
    torque_vectoring = CornerSet(*_take(values, 4))
    energy_recovery, unknown_0x154 = _take(values, 2)
    return {
        "throttle_input": throttle_input,
        "brake_output": brake_output,
        "unknown_0x13e": unknown_0x13e,
        "unknown_0x13f": unknown_0x13f,
        "torque_vectoring": torque_vectoring,
        "energy_recovery": energy_recovery,
        "unknown_0x154": unknown_0x154,
    }
