"""Embedded catalogue documents for gt-telemetry."""

from __future__ import annotations

from importlib import resources

__all__ = ["CIRCUITS_RESOURCE", "VEHICLES_RESOURCE"]


def _resource(name: str):
    return resources.files(__name__).joinpath(name)


VEHICLES_RESOURCE = _resource("vehicles.json")
CIRCUITS_RESOURCE = _resource("circuits.json")
