from __future__ import annotations

from pathlib import Path

import pytest

from gt_telemetry.errors import (
    AlreadyRecordingError,
    NotRecordingError,
    RecordingError,
    UnsupportedExtensionError,
)
from gt_telemetry.telemetry.recorder import TelemetryRecorder
from gt_telemetry.telemetry.replay import FileSource
from tests.helpers import build_frame, read_capture


@pytest.mark.parametrize("suffix", ["gtr", "gtz"])
def test_recording_is_replayable(tmp_path: Path, suffix: str) -> None:
    frames = [build_frame(sequence_id=index) for index in range(1, 4)]
    recorder = TelemetryRecorder()
    path = tmp_path / f"capture.{suffix}"

    recorder.start(path)
    assert recorder.is_recording
    for frame in frames:
        assert recorder.write(frame)
    assert recorder.stop() == path

    assert not recorder.is_recording
    assert recorder.frames_written == 3
    assert read_capture(path) == b"".join(frames)
    with FileSource(path, frame_interval=0.0) as source:
        assert [source.read() for _ in frames] == frames


def test_write_while_idle_is_ignored(tmp_path: Path) -> None:
    recorder = TelemetryRecorder()

    assert recorder.write(build_frame()) is False
    assert recorder.frames_written == 0


def test_start_twice_fails(tmp_path: Path) -> None:
    recorder = TelemetryRecorder()
    recorder.start(tmp_path / "first.gtr")
    try:
        with pytest.raises(AlreadyRecordingError):
            recorder.start(tmp_path / "second.gtr")
    finally:
        recorder.stop()

    assert not (tmp_path / "second.gtr").exists()


def test_stop_while_idle_fails() -> None:
    with pytest.raises(NotRecordingError):
        TelemetryRecorder().stop()


def test_start_rejects_unknown_extension(tmp_path: Path) -> None:
    recorder = TelemetryRecorder()

    with pytest.raises(UnsupportedExtensionError):
        recorder.start(tmp_path / "capture.bin")

    assert not recorder.is_recording


def test_start_reports_unwritable_destination(tmp_path: Path) -> None:
    with pytest.raises(RecordingError):
        TelemetryRecorder().start(tmp_path / "missing" / "capture.gtr")


def test_recorder_restarts_with_fresh_count(tmp_path: Path) -> None:
    recorder = TelemetryRecorder()
    recorder.start(tmp_path / "one.gtr")
    recorder.write(build_frame())
    recorder.stop()

    recorder.start(tmp_path / "two.gtz")
    assert recorder.frames_written == 0
    assert recorder.path == tmp_path / "two.gtz"
    recorder.stop()


def test_stop_returns_the_recorded_path(tmp_path: Path) -> None:
    recorder = TelemetryRecorder()
    recorder.start(str(tmp_path / "session.gtz"))

    stopped = recorder.stop()

    assert isinstance(stopped, Path)
    assert stopped == tmp_path / "session.gtz"
    assert recorder.path == stopped
