from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from gt_telemetry.logging import TRACE, JsonFormatter, resolve_level, setup_logging
from gt_telemetry.logging.config import PACKAGE_LOGGER


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("trace", TRACE),
        ("debug", logging.DEBUG),
        ("info", logging.INFO),
        ("warn", logging.WARNING),
        ("error", logging.ERROR),
        ("fatal", logging.CRITICAL),
        ("panic", logging.CRITICAL),
        (None, logging.WARNING),
        (logging.INFO, logging.INFO),
    ],
)
def test_resolve_level(name, expected: int) -> None:
    assert resolve_level(name) == expected


def test_resolve_level_off_disables_everything() -> None:
    assert resolve_level("off") > logging.CRITICAL


def test_resolve_level_unknown_name_warns(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="gt_telemetry"):
        assert resolve_level("chatty") == logging.WARNING

    assert any(getattr(record, "event", "") == "logging.unknown_level" for record in caplog.records)


def test_json_formatter_includes_extra_fields() -> None:
    record = logging.LogRecord("gt_telemetry.test", logging.INFO, __file__, 1, "Hello.", None, None)
    record.event = "test.event"
    record.port = 33740

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "Hello."
    assert payload["level"] == "info"
    assert payload["logger"] == "gt_telemetry.test"
    assert payload["event"] == "test.event"
    assert payload["port"] == 33740
    assert "timestamp" in payload


def test_setup_logging_writes_json_to_file(tmp_path: Path) -> None:
    destination = tmp_path / "logs" / "telemetry.log"

    logger = setup_logging({"logging": {"level": "info", "output": str(destination), "format": "json"}})
    logging.getLogger(f"{PACKAGE_LOGGER}.client").info(
        "Telemetry client started.", extra={"event": "client.started"}
    )
    logging.getLogger(f"{PACKAGE_LOGGER}.client").debug("Hidden.")
    for handler in logger.handlers:
        handler.flush()

    lines = destination.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["event"] == "client.started"
    assert logger.propagate is False


def test_setup_logging_replaces_previous_handler(tmp_path: Path) -> None:
    logger = logging.getLogger(PACKAGE_LOGGER)
    before = len(logger.handlers)

    setup_logging({"level": "warn", "output": "stderr"})
    setup_logging({"level": "debug", "output": "stdout", "format": "text"})

    assert len(logger.handlers) == before + 1
    assert logger.level == logging.DEBUG
    assert isinstance(logger.handlers[-1].formatter, logging.Formatter)
    assert not isinstance(logger.handlers[-1].formatter, JsonFormatter)
