"""Telemetry acquisition: deciphering, sources, decoding and recording."""

from gt_telemetry.telemetry.cipher import MAGIC, decode, encode
from gt_telemetry.telemetry.packet import Flags, TelemetryPacket
from gt_telemetry.telemetry.recorder import TelemetryRecorder
from gt_telemetry.telemetry.replay import FileSource, capture_compression, iter_frames
from gt_telemetry.telemetry.sources import TelemetrySource, open_source
from gt_telemetry.telemetry.statistics import PacketStatistics
from gt_telemetry.telemetry.udp import UDPSource

__all__ = [
    "FileSource",
    "Flags",
    "MAGIC",
    "PacketStatistics",
    "TelemetryPacket",
    "TelemetryRecorder",
    "TelemetrySource",
    "UDPSource",
    "capture_compression",
    "decode",
    "encode",
    "iter_frames",
    "open_source",
]
