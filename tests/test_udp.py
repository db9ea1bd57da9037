"""Focused tests for the heartbeat driven UDP source."""

from __future__ import annotations

import os
import time

import pytest

from gt_telemetry.errors import DecipherError, NoDataError, ReceiveError
from gt_telemetry.models import TelemetryFormat
from gt_telemetry.telemetry.packet import TelemetryPacket
from gt_telemetry.telemetry.udp import UDPSource
from tests.helpers import ConsoleStub, build_frame, encipher_frame, occupy_udp_port, wait_until


@pytest.fixture
def console() -> ConsoleStub:
    stub = ConsoleStub()
    try:
        yield stub
    finally:
        stub.close()


def _source(console: ConsoleStub, telemetry_format: TelemetryFormat | str = "~", **kwargs) -> UDPSource:
    kwargs.setdefault("heartbeat_interval", 5.0)
    kwargs.setdefault("poll_interval", 0.01)
    return UDPSource("127.0.0.1", console.port, telemetry_format, listen_port=0, **kwargs)


def test_heartbeat_sent_on_start_and_datagram_deciphered(console: ConsoleStub) -> None:
    with _source(console) as source:
        heartbeat, _ = console.receive_heartbeat()
        assert heartbeat == b"~"
        assert wait_until(lambda: source.heartbeats_sent == 1)

        plaintext = build_frame(TelemetryFormat.ADDENDUM2, sequence_id=77, engine_rpm=4321.0)
        console.send(encipher_frame(plaintext), source.address)

        frame = source.read()

    packet = TelemetryPacket.from_bytes(frame)
    assert packet.sequence_id == 77
    assert packet.engine_rpm == 4321.0
    assert source.closed


@pytest.mark.parametrize(("telemetry_format", "expected"), [("A", b"A"), ("B", b"B")])
def test_heartbeat_names_requested_format(
    console: ConsoleStub, telemetry_format: str, expected: bytes
) -> None:
    with _source(console, telemetry_format) as source:
        heartbeat, _ = console.receive_heartbeat()
        console.send(
            encipher_frame(build_frame(telemetry_format, sequence_id=5), telemetry_format),
            source.address,
        )
        frame = source.read()

    assert heartbeat == expected
    assert len(frame) == TelemetryFormat.parse(telemetry_format).packet_size


def test_heartbeats_repeat_every_interval(console: ConsoleStub) -> None:
    with _source(console, heartbeat_interval=0.05) as source:
        console.receive_heartbeat()
        console.receive_heartbeat()
        assert wait_until(lambda: source.heartbeats_sent >= 2)


def test_undecipherable_datagram_is_recoverable(console: ConsoleStub) -> None:
    with _source(console) as source:
        console.receive_heartbeat()
        console.send(os.urandom(344), source.address)

        with pytest.raises(DecipherError) as excinfo:
            source.read()

    assert excinfo.value.recoverable


def test_empty_datagram_reports_no_data(console: ConsoleStub) -> None:
    with _source(console) as source:
        console.receive_heartbeat()
        console.send(b"", source.address)

        with pytest.raises(NoDataError):
            source.read()


def test_read_times_out_after_heartbeat_deadline(console: ConsoleStub) -> None:
    with _source(console) as source:
        console.receive_heartbeat()
        with source._deadline_lock:
            source._deadline = time.monotonic() + 0.05

        start = time.perf_counter()
        with pytest.raises(ReceiveError) as excinfo:
            source.read()
        elapsed = time.perf_counter() - start

    assert excinfo.value.recoverable
    assert source.timeouts == 1
    assert elapsed < 1.0


def test_read_after_close_fails(console: ConsoleStub) -> None:
    source = _source(console)
    source.close()
    source.close()

    with pytest.raises(ReceiveError):
        source.read()


def test_bind_failure_reports_receive_error() -> None:
    holder = occupy_udp_port()
    try:
        port = holder.getsockname()[1]
        with pytest.raises(ReceiveError) as excinfo:
            UDPSource("127.0.0.1", 9, "~", listen_port=port)
    finally:
        holder.close()

    assert excinfo.value.context["port"] == port


def test_default_listen_port_is_one_above_send_port() -> None:
    holder = occupy_udp_port()
    port = holder.getsockname()[1]
    holder.close()

    source = UDPSource("127.0.0.1", port - 1, "~", heartbeat_interval=5.0)
    try:
        assert source.address[1] == port
        assert source.remote_address == ("127.0.0.1", port - 1)
        assert source.telemetry_format is TelemetryFormat.ADDENDUM2
    finally:
        source.close()
