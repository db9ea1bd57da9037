"""Derived telemetry quantities computed from the latest packet.

:class:`Transformer` keeps a single slot holding the most recent
:class:`~gt_telemetry.telemetry.packet.TelemetryPacket`.  The client read
loop replaces the slot by reference once per frame; every accessor reads the
slot once and derives its result from that one snapshot, so a consumer never
mixes values from two frames inside a single call.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import math
import threading
from typing import Optional

from . import units
from .models import (
    Coordinate,
    CornerSet,
    GameState,
    RaceType,
    RotationalEnvelope,
    TelemetryFormat,
    TranslationalEnvelope,
    Vector,
)
from .telemetry.packet import Flags, TelemetryPacket
from .vehicles import Vehicle, VehicleCatalogue

__all__ = ["RevLight", "Transformer", "Transmission", "Vmax"]


NEUTRAL_GEAR = 15
REVERSE_GEAR = 0
_PERCENT_PER_PEDAL_STEP = 2.55
_SLIP_GROUND_SPEED_FLOOR = 0.0001
_U16_MAX = 0xFFFF


@dataclass(frozen=True, slots=True)
class Transmission:
    gears: int
    gear_ratios: tuple[float, ...]


@dataclass(frozen=True, slots=True)
class RevLight:
    min: int
    max: int
    active: bool


@dataclass(frozen=True, slots=True)
class Vmax:
    speed: int
    rpm: int


def _lap_time(milliseconds: int) -> Optional[timedelta]:
    if milliseconds < 0:
        return None
    return timedelta(milliseconds=milliseconds)


class Transformer:
    """Read-only view of the latest packet with unit conversions and game state."""

    def __init__(self, vehicles: VehicleCatalogue) -> None:
        self._vehicles = vehicles
        self._snapshot = TelemetryPacket.empty()
        self._vehicle = Vehicle()
        self._vehicle_lock = threading.Lock()

    # -- snapshot slot -------------------------------------------------

    @property
    def snapshot(self) -> TelemetryPacket:
        return self._snapshot

    def publish(self, packet: TelemetryPacket) -> None:
        self._snapshot = packet

    # -- raw passthroughs ----------------------------------------------

    @property
    def position(self) -> Coordinate:
        return self._snapshot.position

    @property
    def velocity(self) -> Vector:
        return self._snapshot.velocity

    @property
    def angular_velocity(self) -> Vector:
        return self._snapshot.angular_velocity

    @property
    def rotation(self) -> RotationalEnvelope:
        return self._snapshot.rotation

    @property
    def translation(self) -> TranslationalEnvelope:
        return self._snapshot.translation

    @property
    def heading(self) -> float:
        return self._snapshot.heading

    @property
    def road_plane(self) -> Vector:
        return self._snapshot.road_plane

    @property
    def road_plane_distance(self) -> int:
        return self._snapshot.road_plane_distance

    @property
    def ride_height_metres(self) -> float:
        return self._snapshot.ride_height

    @property
    def ride_height_millimetres(self) -> float:
        return units.metres_to_millimetres(self._snapshot.ride_height)

    @property
    def engine_rpm(self) -> float:
        return self._snapshot.engine_rpm

    @property
    def fuel_level(self) -> float:
        return self._snapshot.fuel_level

    @property
    def fuel_capacity(self) -> float:
        return self._snapshot.fuel_capacity

    @property
    def fuel_level_percent(self) -> float:
        packet = self._snapshot
        if packet.fuel_capacity == 0:
            return 0.0
        return packet.fuel_level / packet.fuel_capacity * 100.0

    @property
    def oil_pressure(self) -> float:
        return self._snapshot.oil_pressure

    @property
    def oil_temperature_celsius(self) -> float:
        return self._snapshot.oil_temperature

    @property
    def oil_temperature_fahrenheit(self) -> float:
        return units.celsius_to_fahrenheit(self._snapshot.oil_temperature)

    @property
    def water_temperature_celsius(self) -> float:
        return self._snapshot.water_temperature

    @property
    def water_temperature_fahrenheit(self) -> float:
        return units.celsius_to_fahrenheit(self._snapshot.water_temperature)

    @property
    def tyre_temperature_celsius(self) -> CornerSet:
        return self._snapshot.tyre_temperature

    @property
    def tyre_temperature_fahrenheit(self) -> CornerSet:
        return self._snapshot.tyre_temperature.map(units.celsius_to_fahrenheit)

    @property
    def sequence_id(self) -> int:
        return self._snapshot.sequence_id

    @property
    def current_lap(self) -> int:
        return self._snapshot.current_lap

    @property
    def race_laps(self) -> int:
        return self._snapshot.race_laps

    @property
    def best_lap_time(self) -> Optional[timedelta]:
        return _lap_time(self._snapshot.best_lap_time)

    @property
    def last_lap_time(self) -> Optional[timedelta]:
        return _lap_time(self._snapshot.last_lap_time)

    @property
    def time_of_day(self) -> timedelta:
        return timedelta(milliseconds=self._snapshot.time_of_day)

    @property
    def grid_position(self) -> int:
        return self._snapshot.starting_position

    @property
    def race_entrants(self) -> int:
        return self._snapshot.race_entrants

    @property
    def flags(self) -> Flags:
        return self._snapshot.flags

    @property
    def steering_wheel_angle_radians(self) -> float:
        return self._snapshot.steering_wheel_angle

    @property
    def steering_wheel_angle_degrees(self) -> float:
        return units.radians_to_degrees(self._snapshot.steering_wheel_angle)

    @property
    def steering_wheel_force_feedback(self) -> float:
        return self._snapshot.steering_wheel_force_feedback

    @property
    def energy_recovery(self) -> float:
        return self._snapshot.energy_recovery

    @property
    def clutch_output_rpm(self) -> float:
        return self._snapshot.clutch_output_rpm

    @property
    def transmission_top_speed_ratio(self) -> float:
        return self._snapshot.transmission_top_speed_ratio

    @property
    def unknown_0x13e(self) -> int:
        return self._snapshot.unknown_0x13e

    @property
    def unknown_0x13f(self) -> int:
        return self._snapshot.unknown_0x13f

    @property
    def torque_vectoring(self) -> CornerSet:
        return self._snapshot.torque_vectoring

    @property
    def unknown_0x154(self) -> float:
        return self._snapshot.unknown_0x154

    # -- speed ---------------------------------------------------------

    @property
    def ground_speed_metres_per_second(self) -> float:
        return self._snapshot.ground_speed

    @property
    def ground_speed_kph(self) -> float:
        return units.metres_per_second_to_kilometres_per_hour(self._snapshot.ground_speed)

    # -- pedals --------------------------------------------------------

    @property
    def throttle_input_percent(self) -> float:
        return self._snapshot.throttle_input / _PERCENT_PER_PEDAL_STEP

    @property
    def throttle_output_percent(self) -> float:
        return self._snapshot.throttle_output / _PERCENT_PER_PEDAL_STEP

    @property
    def brake_input_percent(self) -> float:
        return self._snapshot.brake_input / _PERCENT_PER_PEDAL_STEP

    @property
    def brake_output_percent(self) -> float:
        return self._snapshot.brake_output / _PERCENT_PER_PEDAL_STEP

    @property
    def clutch_actuation_percent(self) -> float:
        return self._snapshot.clutch_actuation * 100.0

    @property
    def clutch_engagement_percent(self) -> float:
        return self._snapshot.clutch_engagement * 100.0

    # -- engine and transmission ---------------------------------------

    @property
    def turbo_boost_bar(self) -> float:
        return self._snapshot.manifold_pressure - 1.0

    @property
    def turbo_boost_psi(self) -> float:
        return units.bar_to_psi(self.turbo_boost_bar)

    @property
    def turbo_boost_inhg(self) -> float:
        return units.bar_to_inhg(self.turbo_boost_bar)

    @property
    def turbo_boost_kpa(self) -> float:
        return units.bar_to_kpa(self.turbo_boost_bar)

    @property
    def rev_light(self) -> RevLight:
        packet = self._snapshot
        return RevLight(
            min=packet.rev_light_min,
            max=packet.rev_light_max,
            active=int(packet.engine_rpm) > packet.rev_light_min,
        )

    @property
    def current_gear(self) -> int:
        """Selected gear; 0 is reverse and 15 is neutral."""

        return self._snapshot.current_gear

    @property
    def current_gear_string(self) -> str:
        gear = self._snapshot.current_gear
        if gear == REVERSE_GEAR:
            return "R"
        if gear == NEUTRAL_GEAR:
            return "N"
        return str(gear)

    @property
    def suggested_gear(self) -> int:
        return self._snapshot.suggested_gear

    @property
    def transmission(self) -> Transmission:
        ratios = tuple(self._snapshot.gear_ratios)
        return Transmission(gears=sum(1 for ratio in ratios if ratio > 0), gear_ratios=ratios)

    @property
    def current_gear_ratio(self) -> float:
        """Ratio of the selected forward gear, ``-1.0`` in reverse or neutral."""

        packet = self._snapshot
        gear = packet.current_gear
        if gear == REVERSE_GEAR or gear > len(packet.gear_ratios):
            return -1.0
        return packet.gear_ratios[gear - 1]

    @property
    def calculated_vmax(self) -> Vmax:
        packet = self._snapshot
        return Vmax(speed=packet.calculated_max_speed, rpm=self._vmax_rpm(packet))

    @property
    def differential_ratio(self) -> float:
        """Final drive ratio inferred from the top gear and the calculated V-max.

        Returns ``-1.0`` when the transmission reports no gears or the
        inference would divide by zero.
        """

        packet = self._snapshot
        forward = [ratio for ratio in packet.gear_ratios if ratio > 0]
        if not forward:
            return -1.0
        top_ratio = forward[-1]

        radius = packet.tyre_radius
        if self._resolve_vehicle(packet).drivetrain == "FF":
            rolling_diameter = radius.front_left * 2.0
        else:
            rolling_diameter = radius.rear_left * 2.0
        if rolling_diameter == 0:
            return -1.0

        vmax_metres_per_minute = packet.calculated_max_speed * 1000.0 / 60.0
        wheel_rpm = vmax_metres_per_minute / (rolling_diameter * math.pi)
        if wheel_rpm == 0:
            return -1.0
        return (self._vmax_rpm(packet) / top_ratio) / wheel_rpm

    @staticmethod
    def _vmax_rpm(packet: TelemetryPacket) -> int:
        circumference = packet.tyre_radius.rear_left * 2.0 * math.pi
        if circumference == 0:
            return 0
        vmax_metres_per_minute = packet.calculated_max_speed * 1000.0 / 60.0
        rpm = int(vmax_metres_per_minute / circumference * packet.transmission_top_speed_ratio)
        return min(max(rpm, 0), _U16_MAX)

    # -- wheels and suspension -----------------------------------------

    @property
    def tyre_radius_metres(self) -> CornerSet:
        return self._snapshot.tyre_radius

    @property
    def tyre_radius_millimetres(self) -> CornerSet:
        return self._snapshot.tyre_radius.map(units.metres_to_millimetres)

    @property
    def tyre_radius_inches(self) -> CornerSet:
        return self._snapshot.tyre_radius.map(units.metres_to_inches)

    @property
    def tyre_radius_feet(self) -> CornerSet:
        return self._snapshot.tyre_radius.map(units.metres_to_feet)

    @property
    def tyre_diameter_metres(self) -> CornerSet:
        return self._snapshot.tyre_radius.map(lambda radius: radius * 2.0)

    @property
    def tyre_diameter_millimetres(self) -> CornerSet:
        return self.tyre_diameter_metres.map(units.metres_to_millimetres)

    @property
    def tyre_diameter_inches(self) -> CornerSet:
        return self.tyre_diameter_metres.map(units.metres_to_inches)

    @property
    def tyre_diameter_feet(self) -> CornerSet:
        return self.tyre_diameter_metres.map(units.metres_to_feet)

    @property
    def wheel_speed_radians_per_second(self) -> CornerSet:
        return self._snapshot.wheel_radians_per_second.map(abs)

    @property
    def wheel_speed_metres_per_second(self) -> CornerSet:
        return self._wheel_speed(self._snapshot)

    @property
    def wheel_speed_kph(self) -> CornerSet:
        return self.wheel_speed_metres_per_second.map(units.metres_per_second_to_kilometres_per_hour)

    @property
    def wheel_speed_mph(self) -> CornerSet:
        return self.wheel_speed_metres_per_second.map(units.metres_per_second_to_miles_per_hour)

    @property
    def wheel_speed_rpm(self) -> CornerSet:
        return self.wheel_speed_radians_per_second.map(units.radians_per_second_to_rpm)

    @property
    def tyre_slip_ratio(self) -> CornerSet:
        """Wheel speed over ground speed per corner; all ones when stationary."""

        packet = self._snapshot
        ground_speed = units.metres_per_second_to_kilometres_per_hour(packet.ground_speed)
        if ground_speed < _SLIP_GROUND_SPEED_FLOOR:
            return CornerSet(1.0, 1.0, 1.0, 1.0)
        return self._wheel_speed(packet).map(
            lambda speed: units.metres_per_second_to_kilometres_per_hour(speed) / ground_speed
        )

    @staticmethod
    def _wheel_speed(packet: TelemetryPacket) -> CornerSet:
        rps = packet.wheel_radians_per_second
        radius = packet.tyre_radius
        return CornerSet(
            abs(rps.front_left) * radius.front_left,
            abs(rps.front_right) * radius.front_right,
            abs(rps.rear_left) * radius.rear_left,
            abs(rps.rear_right) * radius.rear_right,
        )

    @property
    def suspension_height_metres(self) -> CornerSet:
        return self._snapshot.suspension_height

    @property
    def suspension_height_millimetres(self) -> CornerSet:
        return self._snapshot.suspension_height.map(units.metres_to_millimetres)

    @property
    def suspension_height_inches(self) -> CornerSet:
        return self._snapshot.suspension_height.map(units.metres_to_inches)

    @property
    def suspension_height_feet(self) -> CornerSet:
        return self._snapshot.suspension_height.map(units.metres_to_feet)

    # -- session state -------------------------------------------------

    @property
    def in_main_menu(self) -> bool:
        packet = self._snapshot
        return packet.race_laps < 0 and packet.race_entrants < 0

    @property
    def in_race_menu(self) -> bool:
        packet = self._snapshot
        return packet.race_laps >= 0 and packet.race_entrants < 0

    @property
    def on_circuit(self) -> bool:
        packet = self._snapshot
        return packet.race_laps >= 0 and packet.race_entrants >= 0

    @property
    def game_state(self) -> GameState:
        packet = self._snapshot
        if packet.race_entrants < 0:
            return GameState.MAIN_MENU if packet.race_laps < 0 else GameState.RACE_MENU
        if packet.race_laps >= 0:
            return GameState.LIVE if packet.flags.live else GameState.REPLAY
        return GameState.UNKNOWN

    @property
    def race_type(self) -> RaceType:
        packet = self._snapshot
        if not (packet.race_laps >= 0 and packet.race_entrants >= 0):
            return RaceType.UNKNOWN
        if packet.race_laps == 0:
            return RaceType.TIME_TRIAL if packet.race_entrants <= 3 else RaceType.ENDURANCE
        if packet.race_entrants > 3:
            return RaceType.SPRINT
        return RaceType.UNKNOWN

    @property
    def race_complete(self) -> bool:
        packet = self._snapshot
        return packet.race_laps >= 1 and packet.current_lap > packet.race_laps

    @property
    def telemetry_format(self) -> TelemetryFormat:
        return self._snapshot.telemetry_format

    @property
    def telemetry_started(self) -> bool:
        return self._snapshot.sequence_id > 0

    @property
    def game_version(self) -> str:
        return self._snapshot.game_version

    # -- vehicle -------------------------------------------------------

    @property
    def vehicle(self) -> Vehicle:
        """Catalogue record of the car in the latest packet.

        Resolved again only when the car id changes.  Unknown ids yield a
        record holding just the id, and the main menu clears the record.
        """

        return self._resolve_vehicle(self._snapshot)

    def _resolve_vehicle(self, packet: TelemetryPacket) -> Vehicle:
        with self._vehicle_lock:
            if packet.race_laps < 0 and packet.race_entrants < 0:
                self._vehicle = Vehicle()
            elif self._vehicle.car_id != packet.vehicle_id:
                found = self._vehicles.find(packet.vehicle_id)
                self._vehicle = found if found is not None else Vehicle(car_id=packet.vehicle_id)
            return self._vehicle

    @property
    def vehicle_id(self) -> int:
        return self.vehicle.car_id

    @property
    def vehicle_manufacturer(self) -> str:
        return self.vehicle.manufacturer

    @property
    def vehicle_model(self) -> str:
        return self.vehicle.model

    @property
    def vehicle_year(self) -> int:
        return self.vehicle.year

    @property
    def vehicle_type(self) -> str:
        return self.vehicle.car_type

    @property
    def vehicle_category(self) -> str:
        return self.vehicle.category

    @property
    def vehicle_drivetrain(self) -> str:
        return self.vehicle.drivetrain

    @property
    def vehicle_aspiration(self) -> str:
        return self.vehicle.aspiration

    @property
    def vehicle_aspiration_expanded(self) -> str:
        return self.vehicle.expanded_aspiration

    @property
    def vehicle_has_open_cockpit(self) -> bool:
        return self.vehicle.open_cockpit

    @property
    def vehicle_engine_layout(self) -> str:
        return self.vehicle.engine_layout

    @property
    def vehicle_engine_bank_angle(self) -> float:
        return self.vehicle.engine_bank_angle

    @property
    def vehicle_engine_crank_plane_angle(self) -> float:
        return self.vehicle.engine_crank_plane_angle

    @property
    def vehicle_length_millimetres(self) -> int:
        return self.vehicle.length

    @property
    def vehicle_width_millimetres(self) -> int:
        return self.vehicle.width

    @property
    def vehicle_height_millimetres(self) -> int:
        return self.vehicle.height

    @property
    def vehicle_wheelbase_millimetres(self) -> int:
        return self.vehicle.wheelbase

    @property
    def vehicle_track_front_millimetres(self) -> int:
        return self.vehicle.track_front

    @property
    def vehicle_track_rear_millimetres(self) -> int:
        return self.vehicle.track_rear
