"""Command line application entry point for gt-telemetry."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from ..circuits import CircuitCatalogue
from ..client import TelemetryClient
from ..configuration import ClientOptions, load_project_config
from ..errors import EndOfStream, TelemetryError
from ..logging.config import setup_logging
from ..models import TelemetryFormat
from ..telemetry.packet import TelemetryPacket
from ..telemetry.sources import FILE_SCHEME, UDP_SCHEME, open_source
from ..transformer import Transformer
from ..vehicles import VehicleCatalogue
from .errors import CliError, log_cli_error

__all__ = ["build_parser", "load_cli_config", "main", "run_cli"]


logger = logging.getLogger(__name__)


_POLL_INTERVAL = 0.05
_CLIENT_OPTION_KEYS = ("source", "format", "log_level", "stats_enabled", "circuit_db", "vehicle_db")


def load_cli_config(path: Optional[Path] = None) -> dict[str, Any]:
    """Load the ``[tool.gt_telemetry]`` table from ``path`` or the working directory."""

    candidates = [path] if path is not None else [Path.cwd()]
    for candidate in candidates:
        try:
            loaded = load_project_config(candidate)
        except TelemetryError as exc:
            raise CliError.from_telemetry_error(exc) from exc
        if loaded is None:
            continue
        payload, resolved = loaded
        payload["_config_path"] = str(resolved)
        return payload
    return {"_config_path": None}


def _source_url(value: str) -> str:
    if value.startswith((UDP_SCHEME, FILE_SCHEME)):
        return value
    return f"{FILE_SCHEME}{value}"


def _client_options(namespace: argparse.Namespace, config: Mapping[str, Any]) -> ClientOptions:
    payload = {key: config[key] for key in _CLIENT_OPTION_KEYS if key in config}
    source = getattr(namespace, "source", None)
    if source:
        payload["source"] = _source_url(source)
    if getattr(namespace, "format", None):
        payload["format"] = namespace.format
    try:
        return ClientOptions.from_mapping(payload)
    except TelemetryError as exc:
        raise CliError.from_telemetry_error(exc) from exc


def _handle_capture(namespace: argparse.Namespace, config: Mapping[str, Any]) -> str:
    options = _client_options(namespace, config)
    output: Path = namespace.output
    try:
        client = TelemetryClient(options)
        client.start_recording(output)
    except TelemetryError as exc:
        raise CliError.from_telemetry_error(exc) from exc

    frames = namespace.frames
    deadline = None if namespace.seconds is None else time.monotonic() + namespace.seconds
    client.start()
    try:
        while True:
            result = client.result
            if result is not None:
                _, error = result
                if error is not None:
                    if isinstance(error, TelemetryError):
                        raise CliError.from_telemetry_error(error)
                    raise CliError(str(error), category="io")
                break
            if frames is not None and client.frames_recorded >= frames:
                break
            if deadline is not None and time.monotonic() >= deadline:
                break
            time.sleep(_POLL_INTERVAL)
    except KeyboardInterrupt:
        logger.info("Capture interrupted.", extra={"event": "cli.capture_interrupted"})
    finally:
        client.stop()
        written = client.frames_recorded
        if client.is_recording:
            client.stop_recording()
    return f"Recorded {written} frame(s) to {output}"


def frame_summary(
    packet: TelemetryPacket, transformer: Transformer, circuits: CircuitCatalogue
) -> dict[str, Any]:
    transformer.publish(packet)
    return {
        "sequence_id": packet.sequence_id,
        "format": packet.telemetry_format.value,
        "game_state": transformer.game_state.name.lower(),
        "lap": packet.current_lap,
        "race_laps": packet.race_laps,
        "gear": transformer.current_gear_string,
        "speed_kph": round(transformer.ground_speed_kph, 3),
        "rpm": round(packet.engine_rpm, 1),
        "vehicle_id": packet.vehicle_id,
        "circuit": circuits.locate(packet.position),
    }


def _handle_dump(namespace: argparse.Namespace, config: Mapping[str, Any]) -> str:
    options = _client_options(namespace, config)
    try:
        circuits = CircuitCatalogue.load(options.circuit_db)
        vehicles = VehicleCatalogue.load(options.vehicle_db)
        source = open_source(options.source, options.format)
    except TelemetryError as exc:
        raise CliError.from_telemetry_error(exc) from exc

    transformer = Transformer(vehicles)
    limit = namespace.limit
    emitted = 0
    invalid = 0
    try:
        while limit is None or emitted < limit:
            try:
                frame = source.read()
            except EndOfStream:
                break
            except TelemetryError as exc:
                if not exc.recoverable:
                    raise CliError.from_telemetry_error(exc) from exc
                invalid += 1
                continue
            if len(frame) <= 4:
                continue
            try:
                packet = TelemetryPacket.from_bytes(frame)
            except TelemetryError:
                invalid += 1
                continue
            sys.stdout.write(json.dumps(frame_summary(packet, transformer, circuits)) + "\n")
            emitted += 1
    except KeyboardInterrupt:
        logger.info("Dump interrupted.", extra={"event": "cli.dump_interrupted"})
    finally:
        source.close()
    logger.info(
        "Dump finished.",
        extra={"event": "cli.dump_finished", "frames": emitted, "invalid": invalid},
    )
    return ""


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value!r}")
    return number


def _format_tag(value: str) -> str:
    try:
        return TelemetryFormat.parse(value).value
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser(config: Optional[Mapping[str, Any]] = None) -> argparse.ArgumentParser:
    config = dict(config or {})
    logging_cfg = dict(config.get("logging", {}))

    parser = argparse.ArgumentParser(description="Gran Turismo telemetry capture and inspection")
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to the pyproject.toml holding a [tool.gt_telemetry] table.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=logging_cfg.get("level", "warn"),
        help="Logging level (trace, debug, info, warn, error, fatal, panic or off).",
    )
    parser.add_argument(
        "--log-output",
        dest="log_output",
        default=logging_cfg.get("output", "stderr"),
        help="Logging destination (stdout, stderr or a file path).",
    )
    parser.add_argument(
        "--log-format",
        dest="log_format",
        choices=("json", "text"),
        default=logging_cfg.get("format", "json"),
        help="Logging formatter (json or text).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    capture_parser = subparsers.add_parser(
        "capture", help="Record the telemetry stream to a .gtr or .gtz capture."
    )
    capture_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        required=True,
        help="Capture file to write; the extension selects raw (gtr) or gzip (gtz).",
    )
    capture_parser.add_argument(
        "--source",
        default=None,
        help="udp://HOST:PORT or file://PATH (default: configured source).",
    )
    capture_parser.add_argument(
        "--format",
        type=_format_tag,
        default=None,
        help="Packet format to request: A, B or ~ (default: ~).",
    )
    limits = capture_parser.add_mutually_exclusive_group()
    limits.add_argument("--frames", type=_positive_int, default=None, help="Stop after N frames.")
    limits.add_argument("--seconds", type=_positive_float, default=None, help="Stop after S seconds.")
    capture_parser.set_defaults(handler=_handle_capture)

    dump_parser = subparsers.add_parser(
        "dump", help="Print one JSON line per decoded frame."
    )
    dump_parser.add_argument(
        "source",
        help="Capture path, file://PATH or udp://HOST:PORT.",
    )
    dump_parser.add_argument(
        "--format",
        type=_format_tag,
        default=None,
        help="Packet format to request from a console: A, B or ~.",
    )
    dump_parser.add_argument("--limit", type=_positive_int, default=None, help="Stop after N frames.")
    dump_parser.set_defaults(handler=_handle_dump)
    return parser


def run_cli(args: Optional[Sequence[str]] = None) -> str:
    """Execute the gt-telemetry command line interface."""

    config_parser = argparse.ArgumentParser(add_help=False)
    config_parser.add_argument("--config", dest="config_path", type=Path, default=None)
    config_parser.add_argument("--log-level", dest="log_level", default=None)
    config_parser.add_argument("--log-output", dest="log_output", default=None)
    config_parser.add_argument("--log-format", dest="log_format", choices=("json", "text"), default=None)
    preliminary, _ = config_parser.parse_known_args(args)

    config = load_cli_config(preliminary.config_path)
    logging_config = dict(config.get("logging", {}))
    if preliminary.log_level is not None:
        logging_config["level"] = preliminary.log_level
    if preliminary.log_output is not None:
        logging_config["output"] = preliminary.log_output
    if preliminary.log_format is not None:
        logging_config["format"] = preliminary.log_format
    logging_config.setdefault("level", config.get("log_level", "warn"))
    logging_config.setdefault("output", "stderr")
    logging_config.setdefault("format", "json")
    config["logging"] = logging_config
    config["log_level"] = logging_config["level"]
    setup_logging(config)

    parser = build_parser(config)
    namespace = parser.parse_args(args)

    try:
        result = namespace.handler(namespace, config=config)
    except CliError as exc:
        if not exc.logged:
            log_cli_error(exc.payload, exc_info=exc)
            exc.logged = True
        sys.stdout.write(exc.payload.message + "\n")
        raise SystemExit(exc.status_code) from exc
    if result:
        sys.stdout.write(result)
        if not result.endswith("\n"):
            sys.stdout.write("\n")
    return result


def main() -> None:  # pragma: no cover - thin wrapper
    run_cli()


if __name__ == "__main__":  # pragma: no cover - CLI invocation guard
    main()
