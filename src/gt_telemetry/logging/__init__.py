"""Logging utilities for gt-telemetry."""

from gt_telemetry.logging.config import JsonFormatter, TRACE, resolve_level, setup_logging

__all__ = ["JsonFormatter", "TRACE", "resolve_level", "setup_logging"]
