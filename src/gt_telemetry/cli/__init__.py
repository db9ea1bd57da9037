"""Command line utilities for gt-telemetry."""

from gt_telemetry.cli.app import main, run_cli

__all__ = ["main", "run_cli"]
