"""Selection of a telemetry source from its URL."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable
from urllib.parse import urlsplit

from ..errors import InvalidSourceError
from ..models import TelemetryFormat
from .replay import FileSource
from .udp import UDPSource

__all__ = ["FILE_SCHEME", "TelemetrySource", "UDP_SCHEME", "open_source"]


logger = logging.getLogger(__name__)


UDP_SCHEME = "udp://"
FILE_SCHEME = "file://"


@runtime_checkable
class TelemetrySource(Protocol):
    """Anything yielding deciphered, magic-prefixed frames."""

    def read(self) -> bytes: ...

    def close(self) -> None: ...


def open_source(
    url: str,
    telemetry_format: TelemetryFormat | str = TelemetryFormat.ADDENDUM2,
) -> TelemetrySource:
    """Build the source described by ``url``.

    ``udp://HOST:PORT`` listens for a console whose game port is ``PORT``
    and ``file://PATH`` replays a capture.  Construction errors of the
    sources propagate unchanged.
    """

    if url.startswith(UDP_SCHEME):
        parts = urlsplit(url)
        try:
            port = parts.port
        except ValueError as exc:
            raise InvalidSourceError(f"invalid UDP port in {url!r}", context={"url": url}) from exc
        if not parts.hostname or port is None:
            raise InvalidSourceError(
                f"UDP source must be udp://HOST:PORT, got {url!r}", context={"url": url}
            )
        logger.info(
            "Opening UDP telemetry source.",
            extra={"event": "source.udp", "host": parts.hostname, "port": port},
        )
        return UDPSource(parts.hostname, port, telemetry_format)

    if url.startswith(FILE_SCHEME):
        path = url[len(FILE_SCHEME) :]
        if not path:
            raise InvalidSourceError("file source has no path", context={"url": url})
        logger.info(
            "Opening capture replay source.",
            extra={"event": "source.file", "path": path},
        )
        return FileSource(path)

    raise InvalidSourceError(
        f"unsupported telemetry source {url!r}; expected udp:// or file://",
        context={"url": url},
    )
