"""Mirroring of deciphered frames into a capture file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
import threading
from typing import BinaryIO, Optional, cast

from ..errors import AlreadyRecordingError, NotRecordingError, RecordingError
from .replay import capture_compression, open_capture

__all__ = ["TelemetryRecorder"]


logger = logging.getLogger(__name__)


class TelemetryRecorder:
    """Idle/recording state machine writing ``.gtr`` or ``.gtz`` captures.

    The file written is exactly what :class:`~gt_telemetry.telemetry.replay.FileSource`
    replays.  :meth:`write` is driven by the client read loop while the
    transitions may come from any thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stream: Optional[BinaryIO] = None
        self._path: Optional[Path] = None
        self._frames_written = 0

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._stream is not None

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def frames_written(self) -> int:
        return self._frames_written

    def start(self, path: str | os.PathLike[str]) -> None:
        with self._lock:
            if self._stream is not None:
                raise AlreadyRecordingError(
                    "recording already in progress", context={"path": str(self._path)}
                )
            compression = capture_compression(path)
            try:
                stream = open_capture(path, "wb")
            except OSError as exc:
                raise RecordingError(
                    f"failed to create recording file {path}: {exc}", context={"path": os.fspath(path)}
                ) from exc
            self._stream = stream
            self._path = Path(path)
            self._frames_written = 0
        logger.info(
            "Started recording telemetry.",
            extra={"event": "recorder.started", "path": str(self._path), "compression": compression},
        )

    def stop(self) -> Path:
        with self._lock:
            if self._stream is None:
                raise NotRecordingError("no recording in progress")
            stream, self._stream = self._stream, None
            path = cast(Path, self._path)
            try:
                stream.close()
            except OSError as exc:
                logger.error(
                    "Failed to close recording file.",
                    extra={"event": "recorder.close_failed", "path": str(path), "error": str(exc)},
                )
                raise RecordingError(
                    f"failed to close recording file {path}: {exc}", context={"path": str(path)}
                ) from exc
        logger.info(
            "Stopped recording telemetry.",
            extra={"event": "recorder.stopped", "path": str(path), "frames": self._frames_written},
        )
        return path

    def write(self, frame: bytes) -> bool:
        """Append ``frame`` when recording; returns whether it was written."""

        if not frame:
            return False
        with self._lock:
            if self._stream is None:
                return False
            try:
                self._stream.write(frame)
            except OSError as exc:
                logger.error(
                    "Failed to write frame to recording file.",
                    extra={"event": "recorder.write_failed", "path": str(self._path), "error": str(exc)},
                )
                return False
            self._frames_written += 1
            return True
