"""Convenience re-exports for test helpers."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Tuple

_MODULE_EXPORTS: Tuple[Tuple[str, Iterable[str]], ...] = (
    (
        "packets",
        (
            "GT6_MAGIC",
            "GT7_MAGIC",
            "build_frame",
            "encipher_frame",
            "gear_byte",
        ),
    ),
    ("captures", ("read_capture", "write_capture")),
    (
        "udp",
        (
            "ConsoleStub",
            "free_udp_port",
            "make_fake_clock",
            "occupy_udp_port",
            "wait_until",
        ),
    ),
)

_NAME_TO_MODULE: Dict[str, str] = {
    name: module for module, names in _MODULE_EXPORTS for name in names
}

__all__ = [name for _, names in _MODULE_EXPORTS for name in names]


def __getattr__(name: str) -> Any:
    try:
        module_name = _NAME_TO_MODULE[name]
    except KeyError as exc:  # pragma: no cover - standard AttributeError path
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}") from exc

    module = importlib.import_module(f".{module_name}", __name__)
    return getattr(module, name)


def __dir__() -> List[str]:
    return sorted(set(__all__) | set(globals()))


if TYPE_CHECKING:
    from .captures import read_capture, write_capture
    from .packets import GT6_MAGIC, GT7_MAGIC, build_frame, encipher_frame, gear_byte
    from .udp import ConsoleStub, free_udp_port, make_fake_clock, occupy_udp_port, wait_until
