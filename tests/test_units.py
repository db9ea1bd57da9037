from __future__ import annotations

import math

import pytest

from gt_telemetry import units


@pytest.mark.parametrize(
    ("converter", "value", "expected"),
    [
        (units.bar_to_psi, 1.0, 14.503773773),
        (units.bar_to_inhg, 1.0, 29.529983071),
        (units.bar_to_kpa, 1.5, 150.0),
        (units.celsius_to_fahrenheit, -40.0, -40.0),
        (units.celsius_to_fahrenheit, 100.0, 212.0),
        (units.fahrenheit_to_celsius, 32.0, 0.0),
        (units.metres_to_feet, 1.0, 3.280839895),
        (units.metres_to_inches, 0.0254, 1.0),
        (units.metres_to_millimetres, 0.317, 317.0),
        (units.millimetres_to_inches, 25.4, 1.0),
        (units.metres_per_second_to_kilometres_per_hour, 10.0, 36.0),
        (units.kilometres_per_hour_to_metres_per_second, 36.0, 10.0),
        (units.metres_per_second_to_miles_per_hour, 1.0, 2.236936292),
        (units.radians_per_second_to_rpm, 2.0 * math.pi, 60.0),
        (units.radians_to_degrees, math.pi, 180.0),
        (units.degrees_to_radians, 90.0, math.pi / 2.0),
    ],
)
def test_unit_conversions(converter, value: float, expected: float) -> None:
    assert converter(value) == pytest.approx(expected)
