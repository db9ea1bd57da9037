"""Telemetry client tying a source, the decoder and the derived view together."""

from __future__ import annotations

import logging
import os
from pathlib import Path
import threading
import time
from types import TracebackType
from typing import Any, Optional

from .circuits import CircuitCatalogue
from .configuration import ClientOptions
from .errors import DecipherError, EndOfStream, SourceError, TelemetryError
from .logging.config import PACKAGE_LOGGER, resolve_level
from .models import CoordinateKind
from .telemetry.packet import TelemetryPacket
from .telemetry.recorder import TelemetryRecorder
from .telemetry.sources import TelemetrySource, open_source
from .telemetry.statistics import PacketStatistics
from .transformer import Transformer
from .vehicles import VehicleCatalogue

__all__ = ["LOOP_INTERVAL", "RunResult", "TelemetryClient"]


logger = logging.getLogger(__name__)


LOOP_INTERVAL = 0.004
RunResult = tuple[bool, Optional[Exception]]


class TelemetryClient:
    """Read loop publishing decoded packets into :attr:`telemetry`.

    The loop runs either in the caller's thread through :meth:`run` or in a
    background thread through :meth:`start`.  Consumers read the latest
    snapshot from :attr:`telemetry` from any thread.
    """

    def __init__(self, options: Optional[ClientOptions] = None, **overrides: Any) -> None:
        self._options = (options or ClientOptions()).with_overrides(**overrides)
        logging.getLogger(PACKAGE_LOGGER).setLevel(resolve_level(self._options.log_level))

        self._circuits = CircuitCatalogue.load(self._options.circuit_db)
        self._vehicles = VehicleCatalogue.load(self._options.vehicle_db)
        self._telemetry = Transformer(self._vehicles)
        self._statistics = PacketStatistics(self._options.stats_enabled)
        self._recorder = TelemetryRecorder()

        self._stop = threading.Event()
        self._source_lock = threading.Lock()
        self._source: Optional[TelemetrySource] = None
        self._thread: Optional[threading.Thread] = None
        self._last_frame = b""
        self._finished = False
        self._result: Optional[RunResult] = None

    @property
    def options(self) -> ClientOptions:
        return self._options

    @property
    def telemetry(self) -> Transformer:
        return self._telemetry

    @property
    def circuits(self) -> CircuitCatalogue:
        return self._circuits

    @property
    def vehicles(self) -> VehicleCatalogue:
        return self._vehicles

    @property
    def statistics(self) -> PacketStatistics:
        return self._statistics

    @property
    def last_frame(self) -> bytes:
        """Deciphered bytes of the most recent frame."""

        return self._last_frame

    @property
    def finished(self) -> bool:
        """Whether a replayed capture has been read to its end."""

        return self._finished

    @property
    def result(self) -> Optional[RunResult]:
        """Outcome of the background loop once it has returned."""

        return self._result

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def current_circuit(self, kind: CoordinateKind = CoordinateKind.TRACK) -> Optional[str]:
        return self._circuits.locate(self._telemetry.position, kind)

    # -- read loop -----------------------------------------------------

    def run(self) -> RunResult:
        """Read until stopped or until the source ends.

        Returns ``(recoverable, error)``.  ``error`` is ``None`` after
        :meth:`stop` or at the end of a capture; otherwise ``recoverable``
        tells a supervisor whether calling :meth:`run` again may succeed.
        """

        if threading.current_thread() is not self._thread:
            self._stop.clear()
        try:
            source = open_source(self._options.source, self._options.format)
        except TelemetryError as exc:
            logger.error(
                "Failed to open telemetry source.",
                extra={"event": "client.source_failed", "source": self._options.source, "error": str(exc)},
            )
            return exc.recoverable, exc
        except OSError as exc:
            logger.error(
                "Failed to open telemetry source.",
                extra={"event": "client.source_failed", "source": self._options.source, "error": str(exc)},
            )
            return False, exc

        with self._source_lock:
            self._source = source
        logger.info(
            "Telemetry client started.",
            extra={
                "event": "client.started",
                "source": self._options.source,
                "format": self._options.format.value,
            },
        )
        try:
            return self._read_loop(source)
        finally:
            with self._source_lock:
                self._source = None
            source.close()
            logger.info("Telemetry client stopped.", extra={"event": "client.stopped"})

    def _read_loop(self, source: TelemetrySource) -> RunResult:
        while not self._stop.is_set():
            try:
                frame = source.read()
            except EndOfStream:
                if self._stop.is_set():
                    break
                self._finished = True
                logger.info("Telemetry capture finished.", extra={"event": "client.finished"})
                return False, None
            except SourceError as exc:
                if self._stop.is_set():
                    break
                if not exc.recoverable:
                    logger.error(
                        "Telemetry source failed.",
                        extra={"event": "client.source_error", "error": str(exc), **exc.context},
                    )
                    return False, exc
                if isinstance(exc, DecipherError):
                    self._statistics.record_invalid()
                logger.debug(
                    "Failed to receive telemetry.",
                    extra={"event": "client.receive_failed", "error": str(exc)},
                )
                continue

            if len(frame) > 4:
                self._handle_frame(frame)
            self._stop.wait(LOOP_INTERVAL)
        return False, None

    def _handle_frame(self, frame: bytes) -> None:
        self._last_frame = frame
        self._recorder.write(frame)
        started = time.perf_counter()
        try:
            packet = TelemetryPacket.from_bytes(frame)
        except TelemetryError as exc:
            self._statistics.record_invalid()
            logger.error(
                "Failed to parse telemetry.",
                extra={"event": "client.parse_failed", "error": str(exc), **exc.context},
            )
            return
        self._telemetry.publish(packet)
        self._statistics.record_packet(packet.sequence_id, packet.packet_size, time.perf_counter() - started)

    def start(self) -> None:
        """Run the read loop on a daemon thread."""

        if self.running:
            return
        self._result = None
        self._stop.clear()
        self._thread = threading.Thread(target=self._run_in_thread, name="gt-telemetry-client", daemon=True)
        self._thread.start()

    def _run_in_thread(self) -> None:
        self._result = self.run()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the read loop and close the active source."""

        self._stop.set()
        with self._source_lock:
            source = self._source
        if source is not None:
            source.close()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def join(self, timeout: Optional[float] = None) -> Optional[RunResult]:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return self._result

    def __enter__(self) -> "TelemetryClient":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.stop()
        if self._recorder.is_recording:
            self._recorder.stop()

    # -- recording -----------------------------------------------------

    @property
    def is_recording(self) -> bool:
        return self._recorder.is_recording

    @property
    def frames_recorded(self) -> int:
        return self._recorder.frames_written

    def start_recording(self, path: str | os.PathLike[str]) -> None:
        self._recorder.start(path)

    def stop_recording(self) -> Path:
        return self._recorder.stop()
