"""Watch-mode coordination between the persistent compiler and the bundler."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Sequence
from pathlib import Path

from buildtool.bundler import BundlerAdapter, write_text
from buildtool.compiler import PersistentSession
from buildtool.logging import BuildLog
from buildtool.output import VirtualOutputStore
from buildtool.paths import normalize_virtual_path, parent_dir
from buildtool.units import BuildUnit, BuildUnitRegistry

STATE_IDLE = "idle"
STATE_FLUSHING = "flushing"
STATE_REBUILDING = "rebuilding"

_COMPILED_SUFFIX_RE = re.compile(r"\.d\.ts$|\.js$")


class UnitResolutionError(LookupError):
    """Raised when a changed virtual path belongs to no known build unit."""

    def __init__(self, path: str) -> None:
        super().__init__(f"No package found for {path}")
        self.path = path


def source_path_for(virtual_path: str) -> str:
    """Map a compiled ``.js``/``.d.ts`` path back to its ``.ts`` source."""
    return _COMPILED_SUFFIX_RE.sub(".ts", virtual_path)


class WatchCoordinator:
    """Maps change batches to build units and rebuilds only what changed.

    Batches are queued and handled one at a time, so a batch that arrives
    during a rebuild waits for the current cycle to finish.
    """

    def __init__(
        self,
        session: PersistentSession,
        registry: BuildUnitRegistry,
        units: Sequence[BuildUnit],
        bundler: BundlerAdapter,
        log: BuildLog,
        extra: Sequence[str | Path] = (),
    ) -> None:
        self._session = session
        self._registry = registry
        self._units = tuple(units)
        self._bundler = bundler
        self._log = log
        self._extra = frozenset(normalize_virtual_path(Path(path).resolve()) for path in extra)
        self._queue: asyncio.Queue[tuple[str, ...]] = asyncio.Queue()
        self.state = STATE_IDLE

    @property
    def store(self) -> VirtualOutputStore:
        return self._session.store

    def on_change(self, batch: Sequence[str]) -> None:
        """Store watcher: enqueue a batch for the worker."""
        self._queue.put_nowait(tuple(batch))

    def classify(self, batch: Sequence[str]) -> tuple[list[str], list[BuildUnit]]:
        """Split a batch into pass-through writes and dirty units."""
        direct: list[str] = []
        dirty: list[BuildUnit] = []
        for path in batch:
            source = source_path_for(path)
            if source in self._extra:
                direct.append(path)
                continue
            unit = self._registry.by_root(Path(parent_dir(parent_dir(path))))
            if unit is None or unit not in self._units:
                raise UnitResolutionError(path)
            if source in {normalize_virtual_path(test) for test in unit.tests}:
                direct.append(path)
            elif unit not in dirty:
                dirty.append(unit)
        return direct, dirty

    async def process(self, batch: Sequence[str]) -> list[BuildUnit]:
        """Handle one change batch; return the units that were rebuilt."""
        self.state = STATE_FLUSHING
        direct, dirty = self.classify(batch)
        for path in direct:
            if not path.endswith(".js"):
                continue
            text = self.store.read(path)
            if text is not None:
                await write_text(Path(path), text)

        self.state = STATE_REBUILDING
        self._log.info("Bundling " + ", ".join(unit.label for unit in self._units))
        rebuilt: list[BuildUnit] = []
        for unit in dirty:
            try:
                await self._bundler.bundle(unit, self.store)
            except Exception as error:
                self._log.error(f"Failed to bundle {unit.label}:\n{error}")
                self._log.event("bundle", unit=unit.label, ok=False, error=str(error))
                continue
            self._log.event("bundle", unit=unit.label, ok=True)
            rebuilt.append(unit)
        self._log.info("Bundling done.")
        self._log.event(
            "watch_batch",
            metadata={
                "paths": len(batch),
                "direct_writes": len(direct),
                "dirty_units": [unit.label for unit in dirty],
            },
        )
        self.state = STATE_IDLE
        return rebuilt

    async def _worker(self) -> None:
        while True:
            batch = await self._queue.get()
            try:
                await self.process(batch)
            finally:
                self._queue.task_done()

    async def run(self) -> None:
        """Process batches until the compiler session ends or a batch is fatal."""
        self.store.add_watcher(self.on_change)
        # Everything emitted before the watcher was attached goes out as one batch.
        self.store.flush()
        worker = asyncio.get_running_loop().create_task(self._worker())
        try:
            done, _ = await asyncio.wait(
                {worker, self._session.task}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                task.result()
        finally:
            worker.cancel()
            self._session.stop()
