from __future__ import annotations

import io
import logging
from pathlib import Path

import pytest

from gt_telemetry.errors import (
    CaptureNotFoundError,
    EndOfStream,
    FilenameTooShortError,
    UnsupportedExtensionError,
)
from gt_telemetry.telemetry.cipher import MAGIC_BYTES
from gt_telemetry.telemetry.replay import (
    FRAME_INTERVAL,
    FileSource,
    capture_compression,
    iter_frames,
    open_capture,
)
from tests.helpers import build_frame, make_fake_clock, write_capture


def _frames(count: int) -> list[bytes]:
    return [build_frame(sequence_id=index + 1) for index in range(count)]


@pytest.mark.parametrize(
    ("name", "expected"),
    [("session.gtr", "raw"), ("session.gtz", "gzip"), ("gtz", "gzip")],
)
def test_capture_compression_uses_last_three_characters(name: str, expected: str) -> None:
    assert capture_compression(name) == expected


def test_capture_compression_rejects_short_names() -> None:
    with pytest.raises(FilenameTooShortError):
        capture_compression("gt")


@pytest.mark.parametrize("name", ["session.bin", "session.GTR", "session.gtr.bak"])
def test_capture_compression_rejects_other_extensions(name: str) -> None:
    with pytest.raises(UnsupportedExtensionError):
        capture_compression(name)


@pytest.mark.parametrize("chunk_size", [3, 64, 65536])
def test_iter_frames_splits_on_magic(chunk_size: int) -> None:
    frames = _frames(3)
    stream = io.BytesIO(b"".join(frames))

    assert list(iter_frames(stream, chunk_size)) == frames


def test_iter_frames_discards_leading_bytes(caplog: pytest.LogCaptureFixture) -> None:
    frames = _frames(2)
    stream = io.BytesIO(b"\x01\x02\x03junk" + b"".join(frames))

    with caplog.at_level(logging.WARNING, logger="gt_telemetry"):
        result = list(iter_frames(stream, 16))

    assert result == frames
    events = [getattr(record, "event", None) for record in caplog.records]
    assert "replay.leading_bytes_discarded" in events
    assert caplog.records[events.index("replay.leading_bytes_discarded")].bytes == 7


def test_iter_frames_yields_bare_magic_for_consecutive_markers() -> None:
    frame = build_frame()
    stream = io.BytesIO(MAGIC_BYTES + frame)

    assert list(iter_frames(stream)) == [MAGIC_BYTES, frame]


def test_iter_frames_handles_streams_without_magic() -> None:
    assert list(iter_frames(io.BytesIO(b""))) == []
    assert list(iter_frames(io.BytesIO(b"no frames here"), 4)) == []


@pytest.mark.parametrize("suffix", ["gtr", "gtz"])
def test_file_source_replays_frames_in_order(tmp_path: Path, suffix: str) -> None:
    frames = _frames(4)
    capture = write_capture(tmp_path / f"session.{suffix}", frames)
    clock, sleep, _ = make_fake_clock()

    with FileSource(capture, clock=clock, sleep=sleep) as source:
        replayed = [source.read() for _ in frames]
        with pytest.raises(EndOfStream):
            source.read()

    assert replayed == frames
    assert source.frames_read == 4
    assert source.compression == ("gzip" if suffix == "gtz" else "raw")


def test_file_source_paces_frames_at_sixty_hertz(tmp_path: Path) -> None:
    capture = write_capture(tmp_path / "session.gtr", _frames(3))
    clock, sleep, sleeps = make_fake_clock()
    source = FileSource(capture, clock=clock, sleep=sleep)

    source.read()
    source.read()
    source.read()
    source.close()

    assert sleeps == pytest.approx([FRAME_INTERVAL] * 3)


def test_file_source_sleeps_only_for_remaining_interval(tmp_path: Path) -> None:
    capture = write_capture(tmp_path / "session.gtr", _frames(2))
    now = [10.0]
    sleeps: list[float] = []

    def clock() -> float:
        return now[0]

    def sleep(seconds: float) -> None:
        sleeps.append(seconds)
        now[0] += seconds

    source = FileSource(capture, clock=clock, sleep=sleep)
    source.read()
    now[0] += 0.01
    source.read()
    now[0] += 1.0
    with pytest.raises(EndOfStream):
        source.read()
    source.close()

    assert sleeps == pytest.approx([FRAME_INTERVAL, FRAME_INTERVAL - 0.01])


def test_file_source_does_not_pace_bare_magic(tmp_path: Path) -> None:
    capture = write_capture(tmp_path / "session.gtr", [MAGIC_BYTES, build_frame()])
    clock, sleep, sleeps = make_fake_clock()
    source = FileSource(capture, clock=clock, sleep=sleep)

    assert source.read() == MAGIC_BYTES
    assert sleeps == []
    assert len(source.read()) == 344
    assert len(sleeps) == 1
    assert source.frames_read == 1
    source.close()


def test_file_source_requires_existing_capture(tmp_path: Path) -> None:
    with pytest.raises(CaptureNotFoundError) as excinfo:
        FileSource(tmp_path / "missing.gtr")

    assert not excinfo.value.recoverable
    assert isinstance(excinfo.value, FileNotFoundError)


def test_file_source_checks_extension(tmp_path: Path) -> None:
    capture = tmp_path / "session.bin"
    capture.write_bytes(build_frame())

    with pytest.raises(UnsupportedExtensionError):
        FileSource(capture)


def test_file_source_read_after_close_reports_end_of_stream(tmp_path: Path) -> None:
    capture = write_capture(tmp_path / "session.gtr", _frames(2))
    source = FileSource(capture, frame_interval=0.0)
    source.close()
    source.close()

    with pytest.raises(EndOfStream):
        source.read()


def test_open_capture_round_trips_gzip(tmp_path: Path) -> None:
    path = tmp_path / "session.gtz"
    with open_capture(path, "wb") as handle:
        handle.write(b"payload")

    assert path.read_bytes()[:2] == b"\x1f\x8b"
    with open_capture(path, "rb") as handle:
        assert handle.read() == b"payload"
