"""Minimal package.json loading for build units."""

from __future__ import annotations

import json
from pathlib import Path

from buildtool.units.models import UnitManifest

MANIFEST_FILE_NAME = "package.json"


class ManifestError(ValueError):
    """Raised when a unit manifest is missing or malformed."""


def load_manifest(root: Path) -> UnitManifest:
    """Read the name and declared dependencies from ``root/package.json``."""
    path = root / MANIFEST_FILE_NAME
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as error:
        raise ManifestError(f"No {MANIFEST_FILE_NAME} found in {root}") from error
    except json.JSONDecodeError as error:
        raise ManifestError(f"Invalid JSON in {path}: {error}") from error
    if not isinstance(payload, dict):
        raise ManifestError(f"{path} must contain a JSON object.")
    name = payload.get("name")
    if not isinstance(name, str) or not name:
        raise ManifestError(f"{path} must declare a non-empty 'name'.")
    dependencies: dict[str, str] = {}
    raw_dependencies = payload.get("dependencies", {})
    if not isinstance(raw_dependencies, dict):
        raise ManifestError(f"{path} field 'dependencies' must be an object.")
    for key in sorted(raw_dependencies):
        value = raw_dependencies[key]
        if isinstance(value, str):
            dependencies[key] = value
    return UnitManifest(name=name, dependencies=dependencies)
