"""Tests for the package version metadata."""

from importlib import metadata
from pathlib import Path
import re

import pytest
from packaging.version import Version

import gt_telemetry
from gt_telemetry import _version as version_module


def test_version_is_semver_patch():
    version = Version(gt_telemetry.__version__)

    assert len(version.release) == 3
    assert version_module.version_info == version.release


def test_changelog_lists_current_version():
    changelog = Path(__file__).resolve().parents[1] / "CHANGELOG.md"
    headings = re.findall(r"^## v(\S+)", changelog.read_text(encoding="utf-8"), re.MULTILINE)

    assert headings[0] == gt_telemetry.__version__


def test_installed_metadata_matches_package():
    try:
        installed = metadata.version("gt-telemetry")
    except metadata.PackageNotFoundError:
        pytest.skip("gt-telemetry is not installed")

    assert installed == gt_telemetry.__version__
