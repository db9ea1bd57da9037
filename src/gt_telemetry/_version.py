"""Package version.

``__version__`` is the single place the version is declared; the build reads
it through ``[tool.setuptools.dynamic]`` so the distribution metadata always
agrees with the import package.
"""

from __future__ import annotations

from packaging.version import Version

__all__ = ["__version__", "version_info"]

__version__ = "0.1.0"

_parsed = Version(__version__)
if len(_parsed.release) != 3 or _parsed.is_prerelease:
    raise RuntimeError(f"gt-telemetry releases use MAJOR.MINOR.PATCH versions, found {__version__!r}")

version_info: tuple[int, int, int] = (_parsed.major, _parsed.minor, _parsed.micro)
