"""Bundle one build unit from the virtual store into its ``dist`` directory."""

from __future__ import annotations

from pathlib import Path

from buildtool.annotate import annotate_with_map
from buildtool.bundler.emit import emit, write_text
from buildtool.bundler.engine import (
    FORMAT_CJS,
    FORMAT_ESM,
    BundlerEngine,
    BundlerPlugin,
    BundleRequest,
    BundleWarning,
    OutputOptions,
)
from buildtool.bundler.plugins import VirtualOutputPlugin, external_predicate
from buildtool.config import BuildOptions
from buildtool.logging import BuildLog
from buildtool.output import VirtualOutputStore
from buildtool.paths import normalize_virtual_path, replace_suffix
from buildtool.units import BuildUnit, BuildUnitRegistry

SUPPRESSED_DECLARATION_WARNINGS = frozenset({"CIRCULAR_DEPENDENCY", "UNUSED_EXTERNAL_IMPORT"})


class BundleError(RuntimeError):
    """Raised when a unit cannot be bundled."""

    def __init__(self, unit: str, message: str) -> None:
        super().__init__(f"{unit}: {message}")
        self.unit = unit
        self.message = message


def compiled_path(source: Path | str, extension: str) -> str:
    """Map a ``.ts`` source path to its virtual compiled output path."""
    return replace_suffix(normalize_virtual_path(source), ".ts", extension)


class BundlerAdapter:
    """Produces ESM, CommonJS, and declaration bundles for build units."""

    def __init__(
        self,
        engine: BundlerEngine,
        registry: BuildUnitRegistry,
        options: BuildOptions,
        log: BuildLog,
    ) -> None:
        self._engine = engine
        self._registry = registry
        self._options = options
        self._log = log

    def _aliases(self) -> dict[str, str]:
        return {
            unit.manifest.name: replace_suffix(normalize_virtual_path(unit.entry), ".ts", "")
            for unit in self._registry.units()
        }

    def _log_warning(self, unit: BuildUnit, warning: BundleWarning) -> None:
        self._log.info(f"{unit.label}: {warning.code}: {warning.message}")

    def _js_plugins(self, unit: BuildUnit, store: VirtualOutputStore) -> tuple[BundlerPlugin, ...]:
        delegate: BundlerPlugin | None = None
        if unit.needs_grammar:
            delegate = self._engine.grammar_plugin()
            if delegate is None:
                raise BundleError(unit.label, "unit has .grammar files but no grammar plugin")
        return (VirtualOutputPlugin(store, ".js", delegate=delegate, aliases=self._aliases()),)

    def _annotate(self, code: str, map_text: str | None) -> tuple[str, str | None]:
        if not self._options.pure_annotations:
            return code, map_text
        return annotate_with_map(code, map_text)

    async def bundle(self, unit: BuildUnit, store: VirtualOutputStore) -> list[Path]:
        """Write ``index.js``, ``index.cjs``, and ``index.d.ts`` for a unit."""
        names = [other.manifest.name for other in self._registry.units() if other is not unit]
        external = external_predicate(names)
        dist = unit.dist_dir
        written: list[Path] = []

        js_input = compiled_path(unit.entry, ".js")
        if not store.has(js_input):
            raise BundleError(unit.label, f"no compiled output for {js_input}")
        build = await self._engine.bundle(
            BundleRequest(
                input=js_input,
                external=external,
                plugins=self._js_plugins(unit, store),
                on_warning=lambda warning: self._log_warning(unit, warning),
            )
        )
        written.extend(
            await emit(
                build,
                OutputOptions(
                    format=FORMAT_ESM,
                    file=str(dist / "index.js"),
                    source_map=self._options.source_map,
                    external_live_bindings=False,
                ),
                transform=self._annotate,
            )
        )
        written.extend(
            await emit(
                build,
                OutputOptions(
                    format=FORMAT_CJS,
                    file=str(dist / "index.cjs"),
                    source_map=self._options.source_map,
                ),
            )
        )

        def on_declaration_warning(warning: BundleWarning) -> None:
            if warning.code not in SUPPRESSED_DECLARATION_WARNINGS:
                self._log_warning(unit, warning)

        declaration_build = await self._engine.bundle(
            BundleRequest(
                input=compiled_path(unit.entry, ".d.ts"),
                external=external,
                plugins=(
                    VirtualOutputPlugin(store, ".d.ts", aliases=self._aliases()),
                    self._engine.declaration_plugin(),
                ),
                on_warning=on_declaration_warning,
            )
        )
        written.extend(
            await emit(
                declaration_build,
                OutputOptions(format=FORMAT_ESM, file=str(dist / "index.d.ts")),
            )
        )
        return written

    async def copy_tests(self, unit: BuildUnit, store: VirtualOutputStore) -> list[Path]:
        """Write compiled test files beside their sources, unbundled."""
        written: list[Path] = []
        for test in unit.tests:
            compiled = compiled_path(test, ".js")
            text = store.read(compiled)
            if text is None:
                continue
            target = test.with_suffix(".js")
            await write_text(target, text)
            written.append(target)
        return written
