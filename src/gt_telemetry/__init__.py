"""Client for the Gran Turismo telemetry stream.

The console broadcasts Salsa20 enciphered packets once per simulation tick
while it receives heartbeats.  :class:`TelemetryClient` deciphers and decodes
them, and exposes the latest packet through :class:`Transformer` together
with unit conversions, session state and catalogue lookups for the current
car and circuit.  Captures recorded to ``.gtr``/``.gtz`` files can be
replayed through the same client.
"""

from ._version import __version__
from .circuits import Circuit, CircuitCatalogue
from .client import TelemetryClient
from .configuration import ClientOptions, load_project_config
from .errors import TelemetryError
from .models import (
    Coordinate,
    CoordinateKind,
    CornerSet,
    GameState,
    QuantisedCoordinate,
    RaceType,
    TelemetryFormat,
)
from .telemetry.packet import Flags, TelemetryPacket
from .transformer import Transformer
from .vehicles import Vehicle, VehicleCatalogue, expand_aspiration

__all__ = [
    "Circuit",
    "CircuitCatalogue",
    "ClientOptions",
    "Coordinate",
    "CoordinateKind",
    "CornerSet",
    "Flags",
    "GameState",
    "QuantisedCoordinate",
    "RaceType",
    "TelemetryClient",
    "TelemetryError",
    "TelemetryFormat",
    "TelemetryPacket",
    "Transformer",
    "Vehicle",
    "VehicleCatalogue",
    "__version__",
    "expand_aspiration",
    "load_project_config",
]
