"""UDP telemetry source for a Gran Turismo console on the local network.

The console only streams while it keeps receiving heartbeats.  Each heartbeat
is a single byte naming the requested packet format, sent to the game's
configured port; telemetry comes back on the port one above it.  A daemon
thread sends the first heartbeat immediately and then one every
``heartbeat_interval`` seconds, pushing the receive deadline forward each
time so a silent console surfaces as a recoverable :class:`ReceiveError`
instead of a blocked reader.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from types import TracebackType
from typing import Optional, Tuple

from ..errors import CipherError, DecipherError, NoDataError, ReceiveError
from ..models import TelemetryFormat
from . import cipher
from ._socket_poll import wait_for_read_ready

__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_SEND_PORT",
    "HEARTBEAT_INTERVAL",
    "UDPSource",
]


logger = logging.getLogger(__name__)


DEFAULT_HOST = "255.255.255.255"
DEFAULT_SEND_PORT = 33739
HEARTBEAT_INTERVAL = 10.0
_RECEIVE_BUFFER_SIZE = 4096
_POLL_INTERVAL = 0.05


class UDPSource:
    """Heartbeat driven, non-blocking UDP reader of enciphered datagrams."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        send_port: int = DEFAULT_SEND_PORT,
        telemetry_format: TelemetryFormat | str = TelemetryFormat.ADDENDUM2,
        *,
        listen_port: Optional[int] = None,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        poll_interval: float = _POLL_INTERVAL,
    ) -> None:
        """Bind the listening socket and start the heartbeat thread.

        Parameters
        ----------
        host:
            Console address, or the broadcast address when unknown.
        send_port:
            Port the game listens on for heartbeats.
        telemetry_format:
            Requested packet layout; selects the heartbeat byte and the
            Salsa20 IV seed.
        listen_port:
            Local port receiving the telemetry.  ``None`` uses
            ``send_port + 1`` like the console expects.
        heartbeat_interval:
            Seconds between heartbeats and length of the receive deadline.
        poll_interval:
            Length of a single readiness poll inside :meth:`read`.
        """

        self._format = TelemetryFormat.parse(telemetry_format)
        self._remote: Tuple[str, int] = (host, int(send_port))
        self._heartbeat_interval = float(heartbeat_interval)
        self._poll_interval = max(float(poll_interval), 0.001)
        port = int(send_port) + 1 if listen_port is None else int(listen_port)

        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            self._socket.setblocking(False)
            self._socket.bind(("", port))
        except OSError as exc:
            self._socket.close()
            raise ReceiveError(
                f"failed to bind telemetry listener on port {port}: {exc}",
                context={"port": port},
            ) from exc
        local_host, local_port = self._socket.getsockname()
        self._address: Tuple[str, int] = (local_host, local_port)

        self._stop = threading.Event()
        self._deadline_lock = threading.Lock()
        self._deadline: Optional[float] = None
        self._heartbeats_sent = 0
        self._timeouts = 0
        self._closed = False

        logger.debug(
            "UDP telemetry source listening.",
            extra={
                "event": "udp.listening",
                "port": local_port,
                "remote_host": host,
                "send_port": self._remote[1],
                "format": self._format.value,
            },
        )
        self._heartbeat_thread = threading.Thread(
            target=self._heartbeat_loop,
            name=f"gt-telemetry-heartbeat-{local_port}",
            daemon=True,
        )
        self._heartbeat_thread.start()

    @property
    def address(self) -> Tuple[str, int]:
        return self._address

    @property
    def remote_address(self) -> Tuple[str, int]:
        return self._remote

    @property
    def telemetry_format(self) -> TelemetryFormat:
        return self._format

    @property
    def heartbeats_sent(self) -> int:
        return self._heartbeats_sent

    @property
    def timeouts(self) -> int:
        return self._timeouts

    @property
    def closed(self) -> bool:
        return self._closed

    def send_heartbeat(self) -> bool:
        """Send one heartbeat and push the receive deadline forward."""

        sent = True
        try:
            self._socket.sendto(self._format.heartbeat, self._remote)
        except OSError as exc:
            sent = False
            logger.error(
                "Failed to send telemetry heartbeat.",
                extra={
                    "event": "udp.heartbeat_failed",
                    "remote_host": self._remote[0],
                    "send_port": self._remote[1],
                    "error": str(exc),
                },
            )
        else:
            self._heartbeats_sent += 1
            logger.debug(
                "Telemetry heartbeat sent.",
                extra={
                    "event": "udp.heartbeat",
                    "remote_host": self._remote[0],
                    "send_port": self._remote[1],
                    "format": self._format.value,
                },
            )
        with self._deadline_lock:
            if not self._stop.is_set():
                self._deadline = time.monotonic() + self._heartbeat_interval
        return sent

    def read(self) -> bytes:
        """Receive one datagram and return its deciphered frame."""

        while True:
            if self._stop.is_set():
                raise ReceiveError("udp telemetry source is closed", context={"port": self._address[1]})
            with self._deadline_lock:
                deadline = self._deadline
            if deadline is not None and time.monotonic() >= deadline:
                self._timeouts += 1
                raise ReceiveError(
                    "no telemetry received before the heartbeat deadline",
                    context={"port": self._address[1], "timeout": self._heartbeat_interval},
                )
            if not wait_for_read_ready(self._socket, timeout=self._poll_interval, deadline=deadline):
                continue
            try:
                payload, _ = self._socket.recvfrom(_RECEIVE_BUFFER_SIZE)
            except BlockingIOError:
                continue
            except OSError as exc:
                raise ReceiveError(
                    f"failed to receive telemetry: {exc}",
                    context={"port": self._address[1]},
                ) from exc
            break

        if not payload:
            raise NoDataError("empty telemetry datagram", context={"port": self._address[1]})
        try:
            return cipher.decode(self._format.iv_seed, payload)
        except CipherError as exc:
            raise DecipherError(f"failed to decipher telemetry: {exc}", context=exc.context) from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        if self._heartbeat_thread is not threading.current_thread():
            self._heartbeat_thread.join(timeout=max(self._poll_interval * 4, 1.0))
        with self._deadline_lock:
            self._deadline = None
        self._socket.close()
        logger.debug(
            "UDP telemetry source closed.",
            extra={"event": "udp.closed", "port": self._address[1], "heartbeats": self._heartbeats_sent},
        )

    def __enter__(self) -> "UDPSource":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def _heartbeat_loop(self) -> None:
        while not self._stop.is_set():
            self.send_heartbeat()
            if self._stop.wait(self._heartbeat_interval):
                break
