"""Virtual compiler configuration derived from the units of one build."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from buildtool.config import BuildOptions, CompilerSettings
from buildtool.paths import normalize_virtual_path
from buildtool.units import BuildUnit, ts_source_files


def compiler_options(
    units: Sequence[BuildUnit],
    settings: CompilerSettings,
    options: BuildOptions,
) -> dict[str, object]:
    """Return the fixed option set plus name-to-entry path mappings."""
    paths = {unit.manifest.name: [normalize_virtual_path(unit.entry)] for unit in units}
    compiler: dict[str, object] = {
        "paths": paths,
        "lib": list(settings.lib),
        "types": list(settings.types),
        "stripInternal": True,
        "noUnusedLocals": True,
        "strict": settings.strict,
        "target": settings.target,
        "module": settings.module,
        "newLine": "lf",
        "declaration": True,
        "declarationMap": True,
        "moduleResolution": "node",
    }
    if options.source_map:
        compiler["sourceMap"] = True
    return compiler


def unit_dirs(units: Sequence[BuildUnit]) -> list[Path]:
    """Return every source and test directory across the units, in order."""
    dirs: list[Path] = []
    for unit in units:
        dirs.extend(unit.dirs)
    return dirs


def include_globs(units: Sequence[BuildUnit], extra: Sequence[str | Path] = ()) -> tuple[str, ...]:
    globs = [normalize_virtual_path(directory) + "/*.ts" for directory in unit_dirs(units)]
    globs.extend(normalize_virtual_path(Path(path).resolve()) for path in extra)
    return tuple(globs)


def root_names(units: Sequence[BuildUnit], extra: Sequence[str | Path] = ()) -> tuple[str, ...]:
    """Expand the include globs into the concrete root file set."""
    names: list[str] = []
    seen: set[str] = set()
    for directory in unit_dirs(units):
        for path in ts_source_files(directory):
            key = normalize_virtual_path(path)
            if key not in seen:
                seen.add(key)
                names.append(key)
    for path in extra:
        key = normalize_virtual_path(Path(path).resolve())
        if key not in seen:
            seen.add(key)
            names.append(key)
    return tuple(names)
