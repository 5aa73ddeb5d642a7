"""Typed models for build units."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True, frozen=True)
class UnitManifest:
    """Subset of package metadata the pipeline relies on."""

    name: str
    dependencies: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class BuildUnit:
    """One independently publishable package being compiled and bundled."""

    entry: Path
    root: Path
    source_dir: Path
    test_dir: Path | None
    tests: tuple[Path, ...]
    manifest: UnitManifest
    needs_grammar: bool

    @property
    def dirs(self) -> tuple[Path, ...]:
        """Directories whose sources belong to this unit."""
        if self.test_dir is None:
            return (self.source_dir,)
        return (self.source_dir, self.test_dir)

    @property
    def label(self) -> str:
        return self.root.name

    @property
    def dist_dir(self) -> Path:
        return self.root / "dist"
