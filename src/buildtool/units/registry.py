"""Per-invocation registry of build units keyed by entry path."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from buildtool.units.manifest import load_manifest
from buildtool.units.models import BuildUnit

TEST_DIR_NAME = "test"
GRAMMAR_SUFFIX = ".grammar"


def ts_source_files(directory: Path) -> tuple[Path, ...]:
    """Return TypeScript sources in a directory, excluding declaration files."""
    return tuple(
        sorted(
            path
            for path in directory.iterdir()
            if path.is_file() and path.name.endswith(".ts") and not path.name.endswith(".d.ts")
        )
    )


def probe_test_dir(root: Path) -> Path | None:
    """Return the unit's test directory, or None when it does not exist."""
    candidate = root / TEST_DIR_NAME
    if candidate.is_dir():
        return candidate
    return None


def load_unit(entry: Path) -> BuildUnit:
    """Derive a build unit from the layout around its entry file."""
    resolved = entry.resolve()
    source_dir = resolved.parent
    root = source_dir.parent
    test_dir = probe_test_dir(root)
    tests = ts_source_files(test_dir) if test_dir is not None else ()
    needs_grammar = any(
        path.is_file() and path.name.endswith(GRAMMAR_SUFFIX) for path in source_dir.iterdir()
    )
    return BuildUnit(
        entry=resolved,
        root=root,
        source_dir=source_dir,
        test_dir=test_dir,
        tests=tests,
        manifest=load_manifest(root),
        needs_grammar=needs_grammar,
    )


class BuildUnitRegistry:
    """Memoizes build units for the lifetime of one build or watch session."""

    def __init__(self) -> None:
        self._by_entry: dict[Path, BuildUnit] = {}

    def get(self, entry: str | Path) -> BuildUnit:
        """Return the unit for an entry path, constructing it on first use."""
        key = Path(entry).resolve()
        unit = self._by_entry.get(key)
        if unit is None:
            unit = load_unit(key)
            self._by_entry[key] = unit
        return unit

    def get_many(self, entries: Iterable[str | Path]) -> list[BuildUnit]:
        return [self.get(entry) for entry in entries]

    def by_root(self, root: str | Path) -> BuildUnit | None:
        """Find a known unit by its root directory."""
        target = Path(root)
        for unit in self._by_entry.values():
            if unit.root == target:
                return unit
        return None

    def by_name(self, name: str) -> BuildUnit | None:
        """Find a known unit by its manifest name."""
        for unit in self._by_entry.values():
            if unit.manifest.name == name:
                return unit
        return None

    def units(self) -> tuple[BuildUnit, ...]:
        return tuple(self._by_entry.values())
