from __future__ import annotations

import logging
import sys
from pathlib import Path
from textwrap import dedent
from typing import Iterator

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))


def write_pyproject(directory: Path, contents: str) -> Path:
    """Persist a ``pyproject.toml`` under ``directory`` and return its path."""

    payload = dedent(contents).lstrip()
    target = directory / "pyproject.toml"
    target.write_text(payload, encoding="utf8")
    return target


@pytest.fixture(autouse=True)
def reset_package_logger() -> Iterator[None]:
    """Undo handler, level and propagation changes made to the package logger."""

    logger = logging.getLogger("gt_telemetry")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    try:
        yield
    finally:
        for handler in list(logger.handlers):
            if handler not in handlers:
                logger.removeHandler(handler)
                handler.close()
        logger.setLevel(level)
        logger.propagate = propagate


@pytest.fixture
def pyproject_factory(tmp_path: Path):
    """Write ``pyproject.toml`` documents into a temporary project directory."""

    def _write(contents: str) -> Path:
        return write_pyproject(tmp_path, contents)

    return _write
