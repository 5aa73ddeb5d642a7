"""Drive the external compiler against the mangler and the virtual store."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from buildtool.compiler.engine import (
    CompileRequest,
    CompilerEngine,
    Diagnostic,
)
from buildtool.compiler.mangler import CommentMangler
from buildtool.compiler.tsconfig import compiler_options, include_globs, root_names, unit_dirs
from buildtool.config import BuildConfig
from buildtool.logging import BuildLog
from buildtool.output import VirtualOutputStore
from buildtool.units import BuildUnit


@dataclass(slots=True)
class PersistentSession:
    """Long-lived incremental compilation feeding one output store."""

    store: VirtualOutputStore
    task: asyncio.Task[None]

    def stop(self) -> None:
        """Tear the compilation down; it never finishes on its own."""
        if not self.task.done():
            self.task.cancel()


class CompilerAdapter:
    """Runs one-shot or persistent compilations without disk output."""

    def __init__(self, engine: CompilerEngine, config: BuildConfig, log: BuildLog) -> None:
        self._engine = engine
        self._config = config
        self._log = log

    def build_request(
        self,
        units: Sequence[BuildUnit],
        store: VirtualOutputStore,
        extra: Sequence[str | Path] = (),
    ) -> CompileRequest:
        mangler = CommentMangler(unit_dirs(units), self._config.doc_base_url)
        return CompileRequest(
            root_names=root_names(units, extra),
            include=include_globs(units, extra),
            options=compiler_options(units, self._config.compiler, self._config.options),
            read_file=mangler.read,
            write_file=store.write,
        )

    def report(self, diagnostic: Diagnostic) -> None:
        """Forward a diagnostic to the error or informational stream."""
        if diagnostic.blocking:
            self._log.error(diagnostic.format())
        else:
            self._log.info(diagnostic.format())

    async def compile_once(
        self,
        units: Sequence[BuildUnit],
        extra: Sequence[str | Path] = (),
    ) -> VirtualOutputStore | None:
        """Compile the whole program; return None when emission was blocked."""
        store = VirtualOutputStore(debounce_seconds=self._config.debounce_seconds)
        request = self.build_request(units, store, extra)
        result = await self._engine.compile(request)
        for diagnostic in result.diagnostics:
            self.report(diagnostic)
        failed = result.emit_skipped or result.has_blocking
        self._log.event(
            "compile",
            ok=not failed,
            metadata={
                "root_count": len(request.root_names),
                "diagnostic_count": len(result.diagnostics),
                "emit_skipped": result.emit_skipped,
            },
        )
        if failed:
            return None
        return store

    def start_persistent(
        self,
        units: Sequence[BuildUnit],
        extra: Sequence[str | Path] = (),
    ) -> PersistentSession:
        """Start an incremental compilation that keeps re-emitting into one store.

        Must be called from a running event loop. Blocking diagnostics are
        reported but leave the session alive for later corrections.
        """
        store = VirtualOutputStore(debounce_seconds=self._config.debounce_seconds)
        request = self.build_request(units, store, extra)
        task = asyncio.get_running_loop().create_task(self._engine.watch(request, self.report))
        return PersistentSession(store=store, task=task)
