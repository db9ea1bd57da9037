"""Property based checks for the cipher, decoder, quantisation, catalogues and units."""

from __future__ import annotations

import json
import math

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from gt_telemetry import units
from gt_telemetry.circuits import START_LINE_RESOLUTION, TRACK_RESOLUTION
from gt_telemetry.errors import InvalidMagicError, ShortDataError
from gt_telemetry.models import Coordinate, TelemetryFormat, quantise
from gt_telemetry.telemetry import cipher
from gt_telemetry.telemetry.packet import TelemetryPacket
from gt_telemetry.vehicles import VehicleCatalogue


_FORMATS = st.sampled_from(list(TelemetryFormat))
_IVS = st.integers(min_value=0, max_value=0xFFFFFFFF)
_FINITE = st.floats(min_value=-1.0e6, max_value=1.0e6, allow_nan=False, allow_infinity=False)


@settings(max_examples=60, deadline=None)
@given(telemetry_format=_FORMATS, iv=_IVS, body=st.binary(min_size=64, max_size=340))
def test_decode_recovers_every_enciphered_frame(telemetry_format, iv, body) -> None:
    plaintext = cipher.MAGIC_BYTES + body

    decoded = cipher.decode(telemetry_format.iv_seed, cipher.encode(telemetry_format.iv_seed, plaintext, iv))

    assert decoded[:4] == cipher.MAGIC_BYTES
    assert decoded[:0x40] == plaintext[:0x40]
    assert decoded[0x44:] == plaintext[0x44:]


@settings(max_examples=60, deadline=None)
@given(telemetry_format=_FORMATS, iv=_IVS, plaintext=st.binary(min_size=68, max_size=344))
def test_decode_rejects_frames_without_magic(telemetry_format, iv, plaintext) -> None:
    assume(plaintext[:4] != cipher.MAGIC_BYTES)

    with pytest.raises(InvalidMagicError):
        cipher.decode(telemetry_format.iv_seed, cipher.encode(telemetry_format.iv_seed, plaintext, iv))


@given(data=st.binary(max_size=0x43))
def test_decode_rejects_datagrams_too_short_for_the_iv(data) -> None:
    with pytest.raises(ShortDataError):
        cipher.decode(TelemetryFormat.ADDENDUM2.iv_seed, data)


@given(telemetry_format=_FORMATS, data=st.data())
def test_decoded_format_matches_length_class(telemetry_format, data) -> None:
    body = data.draw(
        st.binary(min_size=telemetry_format.packet_size - 4, max_size=telemetry_format.packet_size - 4)
    )

    packet = TelemetryPacket.from_bytes(cipher.MAGIC_BYTES + body)

    assert packet.telemetry_format is telemetry_format
    assert packet.packet_size == telemetry_format.packet_size
    assert 0 <= packet.current_gear <= 15
    assert 0 <= packet.suggested_gear <= 15


@given(value=_FINITE, resolution=st.sampled_from([2, 4, 8, 16, 32, 64]))
def test_quantise_is_idempotent(value, resolution) -> None:
    once = quantise(value, resolution)

    assert quantise(once, resolution) == once
    assert abs(once) <= abs(value)


@given(x=_FINITE, y=_FINITE, z=_FINITE, resolution=st.sampled_from([START_LINE_RESOLUTION, TRACK_RESOLUTION]))
def test_coordinate_quantisation_is_idempotent(x, y, z, resolution) -> None:
    once = Coordinate(x, y, z).quantise(resolution)

    assert Coordinate(once.x, once.y, once.z).quantise(resolution) == once


@given(
    entries=st.dictionaries(
        st.integers(min_value=-10000, max_value=10**6),
        st.tuples(st.text(max_size=12), st.integers(min_value=1900, max_value=2100)),
        min_size=1,
        max_size=15,
    ),
    data=st.data(),
)
def test_vehicle_lookup_ignores_document_order(entries, data) -> None:
    def document(order):
        return json.dumps(
            {
                str(car_id): {"CarID": car_id, "Manufacturer": entries[car_id][0], "Year": entries[car_id][1]}
                for car_id in order
            }
        )

    shuffled = data.draw(st.permutations(list(entries)))
    first = VehicleCatalogue.from_json(document(list(entries)))
    second = VehicleCatalogue.from_json(document(shuffled))

    assert first.ids() == second.ids() == sorted(entries)
    assert list(first) == list(second)
    for car_id in entries:
        assert first.get(car_id) == second.get(car_id)
        assert first.get(car_id).manufacturer == entries[car_id][0]


def _approx(expected: float):
    return pytest.approx(expected, rel=1e-9, abs=1e-9)


@given(value=_FINITE)
def test_unit_conversions_round_trip(value) -> None:
    assert units.fahrenheit_to_celsius(units.celsius_to_fahrenheit(value)) == _approx(value)
    assert units.kilometres_per_hour_to_metres_per_second(
        units.metres_per_second_to_kilometres_per_hour(value)
    ) == _approx(value)
    assert units.degrees_to_radians(units.radians_to_degrees(value)) == _approx(value)
    assert units.millimetres_to_inches(units.metres_to_millimetres(value)) == _approx(
        units.metres_to_inches(value)
    )
    assert units.metres_to_feet(value) * 12.0 == _approx(units.metres_to_inches(value))


@given(value=st.floats(min_value=0.0, max_value=1.0e4, allow_nan=False))
def test_rpm_conversion_matches_full_turns(value) -> None:
    revolutions = units.radians_per_second_to_rpm(value) / 60.0

    assert revolutions * 2.0 * math.pi == pytest.approx(value, rel=1e-9, abs=1e-9)
