"""Readiness polling for the non-blocking telemetry socket."""

from __future__ import annotations

import select
import socket
import time
from typing import Optional

__all__ = ["wait_for_read_ready"]


def wait_for_read_ready(
    sock: socket.socket,
    *,
    timeout: float,
    deadline: Optional[float],
) -> bool:
    """Return ``True`` once ``sock`` has a datagram queued.

    Parameters
    ----------
    sock:
        Non-blocking UDP socket bound by :class:`~gt_telemetry.telemetry.udp.UDPSource`.
    timeout:
        Length of a single polling slice in seconds.
    deadline:
        Monotonic timestamp after which polling gives up.  ``None`` waits
        for one full slice.
    """

    if sock.fileno() < 0:
        return False

    wait_time = max(timeout, 0.0)
    if deadline is not None:
        remaining = deadline - time.monotonic()
        if remaining <= 0.0:
            return False
        wait_time = min(wait_time, remaining)

    try:
        readable, _, _ = select.select([sock], [], [], wait_time)
    except (OSError, ValueError):
        return False
    return bool(readable)
