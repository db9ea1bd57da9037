"""Replay of recorded telemetry captures.

Captures hold deciphered frames concatenated back to back.  ``.gtr`` files
store them raw and ``.gtz`` files wrap the same stream in gzip.  Frames carry
no length prefix: the packet magic that opens every frame is the only
delimiter, so :func:`iter_frames` treats it as a prefix and cuts the stream
in front of each occurrence.
"""

from __future__ import annotations

import gzip
import logging
import os
from pathlib import Path
import time
from types import TracebackType
from typing import BinaryIO, Callable, Iterator, Literal, Optional

from ..errors import (
    CaptureNotFoundError,
    EndOfStream,
    FilenameTooShortError,
    SourceError,
    UnsupportedExtensionError,
)
from .cipher import MAGIC_BYTES

__all__ = [
    "CaptureCompression",
    "DEFAULT_CHUNK_SIZE",
    "FRAME_INTERVAL",
    "FileSource",
    "capture_compression",
    "iter_frames",
    "open_capture",
]


logger = logging.getLogger(__name__)


CaptureCompression = Literal["raw", "gzip"]

FRAME_INTERVAL = 1.0 / 60.0
DEFAULT_CHUNK_SIZE = 64 * 1024
_EXTENSIONS: dict[str, CaptureCompression] = {"gtr": "raw", "gtz": "gzip"}


def capture_compression(path: str | os.PathLike[str]) -> CaptureCompression:
    """Return the compression implied by the last three characters of ``path``."""

    name = os.fspath(path)
    if len(name) < 3:
        raise FilenameTooShortError(
            f"capture filename is too short: {name!r}", context={"path": name}
        )
    extension = name[-3:]
    try:
        return _EXTENSIONS[extension]
    except KeyError:
        raise UnsupportedExtensionError(
            f"unsupported capture extension {extension!r}; expected 'gtr' or 'gtz'",
            context={"path": name, "extension": extension},
        ) from None


def open_capture(path: str | os.PathLike[str], mode: Literal["rb", "wb"]) -> BinaryIO:
    """Open a capture for binary reading or writing with its implied compression."""

    if capture_compression(path) == "gzip":
        if mode == "wb":
            return gzip.open(path, mode, compresslevel=9)  # type: ignore[return-value]
        return gzip.open(path, mode)  # type: ignore[return-value]
    return open(path, mode)


def iter_frames(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield magic-prefixed frames read from ``stream``.

    A magic at the head of the buffer only anchors the stream.  Afterwards
    every byte up to the next magic belongs to the current frame, and the
    remainder at end of file forms the final frame.  Bytes preceding the
    first magic cannot be framed and are discarded.
    """

    marker = len(MAGIC_BYTES)
    buffer = bytearray()
    anchored = False
    discarded = 0
    eof = False
    while not eof:
        chunk = stream.read(chunk_size)
        if chunk:
            buffer += chunk
        else:
            eof = True

        if not anchored:
            start = buffer.find(MAGIC_BYTES)
            if start < 0:
                # Keep a partial magic that may straddle the chunk boundary.
                keep = 0 if eof else marker - 1
                if len(buffer) > keep:
                    discarded += len(buffer) - keep
                    del buffer[: len(buffer) - keep]
                continue
            discarded += start
            del buffer[: start + marker]
            anchored = True
            if discarded:
                _log_discarded(discarded)

        while True:
            end = buffer.find(MAGIC_BYTES)
            if end < 0:
                break
            yield MAGIC_BYTES + bytes(buffer[:end])
            del buffer[: end + marker]

    if not anchored:
        if discarded:
            _log_discarded(discarded)
        return
    if buffer:
        yield MAGIC_BYTES + bytes(buffer)


def _log_discarded(count: int) -> None:
    logger.warning(
        "Discarded capture bytes preceding the first frame.",
        extra={"event": "replay.leading_bytes_discarded", "bytes": count},
    )


class FileSource:
    """Paced reader of a ``.gtr``/``.gtz`` capture.

    Frames are released no faster than one every :data:`FRAME_INTERVAL`
    seconds, the rate at which the console produces them.  The first read
    arms the pacing clock, so it waits one interval as well.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        frame_interval: float = FRAME_INTERVAL,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._path = Path(path)
        if not self._path.exists():
            raise CaptureNotFoundError(
                f"capture file does not exist: {self._path}", context={"path": str(self._path)}
            )
        self._compression = capture_compression(path)
        try:
            self._stream = open_capture(path, "rb")
        except OSError as exc:
            raise SourceError(
                f"failed to open capture {self._path}: {exc}", context={"path": str(self._path)}
            ) from exc
        self._frames = iter_frames(self._stream, chunk_size)
        self._frame_interval = max(float(frame_interval), 0.0)
        self._clock = clock
        self._sleep = sleep
        self._last_frame_at: Optional[float] = None
        self._frames_read = 0
        self._closed = False
        logger.debug(
            "Capture opened for replay.",
            extra={"event": "replay.opened", "path": str(self._path), "compression": self._compression},
        )

    @property
    def path(self) -> Path:
        return self._path

    @property
    def compression(self) -> CaptureCompression:
        return self._compression

    @property
    def frames_read(self) -> int:
        return self._frames_read

    def read(self) -> bytes:
        """Return the next frame, waiting out the remainder of the frame interval."""

        if self._closed:
            raise EndOfStream("capture is closed", context={"path": str(self._path)})
        if self._last_frame_at is None:
            self._last_frame_at = self._clock()

        try:
            frame = next(self._frames)
        except StopIteration:
            raise EndOfStream(
                "end of capture reached",
                context={"path": str(self._path), "frames": self._frames_read},
            ) from None
        except (OSError, EOFError, ValueError) as exc:
            raise SourceError(
                f"failed to read capture {self._path}: {exc}", context={"path": str(self._path)}
            ) from exc
        if len(frame) <= len(MAGIC_BYTES):
            return frame

        remaining = self._frame_interval - (self._clock() - self._last_frame_at)
        if remaining > 0.0:
            self._sleep(remaining)
        self._last_frame_at = self._clock()
        self._frames_read += 1
        return frame

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream.close()

    def __enter__(self) -> "FileSource":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()
