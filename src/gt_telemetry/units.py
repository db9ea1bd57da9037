"""Scalar unit conversions used by the derived telemetry accessors."""

from __future__ import annotations

import math

__all__ = [
    "bar_to_inhg",
    "bar_to_kpa",
    "bar_to_psi",
    "celsius_to_fahrenheit",
    "degrees_to_radians",
    "fahrenheit_to_celsius",
    "kilometres_per_hour_to_metres_per_second",
    "metres_per_second_to_kilometres_per_hour",
    "metres_per_second_to_miles_per_hour",
    "metres_to_feet",
    "metres_to_inches",
    "metres_to_millimetres",
    "millimetres_to_inches",
    "radians_per_second_to_rpm",
    "radians_to_degrees",
]

_PSI_PER_BAR = 14.503773773
_INHG_PER_BAR = 29.529983071
_KPA_PER_BAR = 100.0
_FEET_PER_METRE = 3.280839895
_INCHES_PER_METRE = 39.37007874
_MILLIMETRES_PER_INCH = 25.4
_KPH_PER_MPS = 3.6
_MPH_PER_MPS = 2.236936292


def bar_to_psi(value: float) -> float:
    return value * _PSI_PER_BAR


def bar_to_inhg(value: float) -> float:
    return value * _INHG_PER_BAR


def bar_to_kpa(value: float) -> float:
    return value * _KPA_PER_BAR


def celsius_to_fahrenheit(value: float) -> float:
    return value * 9.0 / 5.0 + 32.0


def fahrenheit_to_celsius(value: float) -> float:
    return (value - 32.0) * 5.0 / 9.0


def metres_to_feet(value: float) -> float:
    return value * _FEET_PER_METRE


def metres_to_inches(value: float) -> float:
    return value * _INCHES_PER_METRE


def metres_to_millimetres(value: float) -> float:
    return value * 1000.0


def millimetres_to_inches(value: float) -> float:
    return value / _MILLIMETRES_PER_INCH


def metres_per_second_to_kilometres_per_hour(value: float) -> float:
    return value * _KPH_PER_MPS


def kilometres_per_hour_to_metres_per_second(value: float) -> float:
    return value / _KPH_PER_MPS


def metres_per_second_to_miles_per_hour(value: float) -> float:
    return value * _MPH_PER_MPS


def radians_per_second_to_rpm(value: float) -> float:
    return value * 60.0 / (2.0 * math.pi)


def radians_to_degrees(value: float) -> float:
    return math.degrees(value)


def degrees_to_radians(value: float) -> float:
    return math.radians(value)
