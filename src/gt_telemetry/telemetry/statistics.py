"""Packet accounting for the client read loop."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

__all__ = ["PacketStatistics", "RATE_SAMPLE_INTERVAL"]


logger = logging.getLogger(__name__)


RATE_SAMPLE_INTERVAL = 10


class PacketStatistics:
    """Decode timings, sequence gaps and packet rates of a telemetry stream.

    Only :meth:`record_invalid` counts while collection is disabled; every
    other figure stays at zero unless ``enabled`` is set.  Decode time and
    packet rate averages are exponential with a weight of one half, the
    rate being sampled each time the sequence id crosses a multiple of
    :data:`RATE_SAMPLE_INTERVAL`.
    """

    def __init__(self, enabled: bool = False, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.enabled = bool(enabled)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_sequence_id: Optional[int] = None
        self._rate_sampled_at = clock()
        self.decode_time_last = 0.0
        self.decode_time_average = 0.0
        self.decode_time_max = 0.0
        self.packet_rate_current = 0
        self.packet_rate_average = 0
        self.packet_rate_max = 0
        self.packets_total = 0
        self.packets_dropped = 0
        self.packets_delayed = 0
        self.packets_invalid = 0
        self.packet_size = 0

    def record_invalid(self) -> None:
        with self._lock:
            self.packets_invalid += 1

    def record_packet(self, sequence_id: int, packet_size: int, decode_time: float) -> None:
        """Account one decoded frame."""

        if not self.enabled:
            return
        with self._lock:
            self.packets_total += 1
            self.decode_time_last = decode_time
            if sequence_id == self._last_sequence_id:
                return
            self.packet_size = packet_size
            if self._last_sequence_id is None:
                self._last_sequence_id = sequence_id
                return

            self.decode_time_average = (self.decode_time_average + decode_time) / 2
            if decode_time > self.decode_time_max:
                self.decode_time_max = decode_time

            delta = sequence_id - self._last_sequence_id
            if delta > 1:
                self.packets_dropped += delta - 1
                logger.warning(
                    "Telemetry packets dropped.",
                    extra={
                        "event": "statistics.packets_dropped",
                        "count": delta - 1,
                        "last_sequence_id": self._last_sequence_id,
                        "sequence_id": sequence_id,
                    },
                )
            elif delta < 0:
                self.packets_delayed += 1
                logger.warning(
                    "Telemetry packet delayed.",
                    extra={
                        "event": "statistics.packet_delayed",
                        "last_sequence_id": self._last_sequence_id,
                        "sequence_id": sequence_id,
                    },
                )
            self._last_sequence_id = sequence_id

            if sequence_id % RATE_SAMPLE_INTERVAL == 0:
                now = self._clock()
                elapsed = now - self._rate_sampled_at
                self._rate_sampled_at = now
                if elapsed > 0.0:
                    self.packet_rate_current = int(RATE_SAMPLE_INTERVAL / elapsed)
                self.packet_rate_average = (self.packet_rate_average + self.packet_rate_current) // 2
                if self.packet_rate_current > self.packet_rate_max:
                    self.packet_rate_max = self.packet_rate_current

    def as_dict(self) -> dict[str, float | int | bool]:
        with self._lock:
            return {
                "enabled": self.enabled,
                "decode_time_last": self.decode_time_last,
                "decode_time_average": self.decode_time_average,
                "decode_time_max": self.decode_time_max,
                "packet_rate_current": self.packet_rate_current,
                "packet_rate_average": self.packet_rate_average,
                "packet_rate_max": self.packet_rate_max,
                "packets_total": self.packets_total,
                "packets_dropped": self.packets_dropped,
                "packets_delayed": self.packets_delayed,
                "packets_invalid": self.packets_invalid,
                "packet_size": self.packet_size,
            }
