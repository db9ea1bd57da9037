"""Exception hierarchy raised by the telemetry sources, decoder and catalogues.

Every error carries an optional ``context`` mapping with the structured
details that are also attached to log records, and a class level
``recoverable`` flag.  Recoverable errors describe a single bad datagram or
a transient socket condition: :meth:`gt_telemetry.client.TelemetryClient.run`
counts them and keeps reading.  The remaining errors surface to the caller.
"""

from __future__ import annotations

from typing import Any, ClassVar, Mapping, Optional

__all__ = [
    "AlreadyRecordingError",
    "BadMagicError",
    "CaptureFormatError",
    "CaptureNotFoundError",
    "CatalogueError",
    "CipherError",
    "ConfigurationError",
    "DecipherError",
    "EndOfStream",
    "FilenameTooShortError",
    "InvalidMagicError",
    "InvalidSourceError",
    "NoDataError",
    "NotRecordingError",
    "PacketError",
    "ReceiveError",
    "RecordingError",
    "ShortDataError",
    "ShortPacketError",
    "SourceError",
    "TelemetryError",
    "UnexpectedEOFError",
    "UnsupportedExtensionError",
    "VehicleNotFoundError",
    "normalise_context",
]


def normalise_context(context: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    if not context:
        return {}
    payload: dict[str, Any] = {}
    for key, value in context.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            payload[key] = value
        else:
            payload[key] = str(value)
    return payload


class TelemetryError(RuntimeError):
    """Base class for every error raised by :mod:`gt_telemetry`."""

    recoverable: ClassVar[bool] = False

    def __init__(self, message: str, *, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.context = normalise_context(context)


class CipherError(TelemetryError):
    """A datagram could not be deciphered."""

    recoverable = True


class ShortDataError(CipherError):
    """The datagram is too short to hold a Salsa20 payload and its IV."""


class InvalidMagicError(CipherError):
    """The deciphered payload does not start with the packet magic."""


class SourceError(TelemetryError):
    """Failure reported by a telemetry source."""


class ReceiveError(SourceError):
    """The socket failed or the receive deadline expired."""

    recoverable = True


class NoDataError(SourceError):
    """An empty datagram was received."""

    recoverable = True


class DecipherError(SourceError):
    """A received datagram failed to decipher."""

    recoverable = True


class EndOfStream(SourceError):
    """A capture file has no frames left."""


class InvalidSourceError(SourceError):
    """The source URL cannot be mapped to a telemetry source."""


class CaptureNotFoundError(SourceError, FileNotFoundError):
    """The capture file does not exist."""


class CaptureFormatError(SourceError):
    """The capture filename does not map to a supported format."""


class FilenameTooShortError(CaptureFormatError):
    """The capture filename is too short to carry an extension."""


class UnsupportedExtensionError(CaptureFormatError):
    """The capture filename does not end in ``gtr`` or ``gtz``."""


class PacketError(TelemetryError):
    """A deciphered frame could not be decoded."""

    recoverable = True


class BadMagicError(PacketError):
    """The frame header is not a known packet magic."""


class ShortPacketError(PacketError):
    """The frame is shorter than the Standard layout."""


class UnexpectedEOFError(PacketError):
    """The frame ends inside a section announced by its length."""


class RecordingError(TelemetryError):
    """Invalid recorder state transition."""


class AlreadyRecordingError(RecordingError):
    pass


class NotRecordingError(RecordingError):
    pass


class CatalogueError(TelemetryError):
    """A catalogue document is malformed."""


class VehicleNotFoundError(CatalogueError, KeyError):
    """No vehicle is registered under the requested id."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ConfigurationError(TelemetryError):
    """Client options are invalid."""
