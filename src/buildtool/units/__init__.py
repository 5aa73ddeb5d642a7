"""Build unit discovery and registry."""

from .manifest import ManifestError, load_manifest
from .models import BuildUnit, UnitManifest
from .registry import BuildUnitRegistry, load_unit, probe_test_dir, ts_source_files

__all__ = [
    "BuildUnit",
    "BuildUnitRegistry",
    "ManifestError",
    "UnitManifest",
    "load_manifest",
    "load_unit",
    "probe_test_dir",
    "ts_source_files",
]
