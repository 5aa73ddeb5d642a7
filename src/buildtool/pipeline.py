"""One-shot and watch-mode build entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

from buildtool.bundler import BundlerAdapter, BundlerEngine
from buildtool.compiler import CompilerAdapter, CompilerEngine
from buildtool.config import BuildConfig
from buildtool.logging import BuildLog, JsonlEventLog
from buildtool.output import VirtualOutputStore
from buildtool.units import BuildUnit, BuildUnitRegistry
from buildtool.watch import WatchCoordinator


def create_log(config: BuildConfig) -> BuildLog:
    """Build the log for a config, attaching the event file when configured."""
    events = JsonlEventLog(config.event_log) if config.event_log is not None else None
    return BuildLog(events=events)


async def _bundle_unit(
    bundler: BundlerAdapter,
    unit: BuildUnit,
    store: VirtualOutputStore,
    log: BuildLog,
) -> list[Path]:
    written = await bundler.bundle(unit, store)
    written.extend(await bundler.copy_tests(unit, store))
    log.event("bundle", unit=unit.label, ok=True, metadata={"files": len(written)})
    return written


async def build(
    entries: str | Path | Sequence[str | Path],
    *,
    compiler_engine: CompilerEngine,
    bundler_engine: BundlerEngine,
    config: BuildConfig,
    log: BuildLog | None = None,
) -> bool:
    """Compile and bundle the given units once.

    Returns False when compilation reports blocking diagnostics. Bundling
    errors propagate so a release build fails as a whole.
    """
    build_log = log or create_log(config)
    if isinstance(entries, (str, Path)):
        entries = [entries]
    registry = BuildUnitRegistry()
    units = registry.get_many(entries)
    compiler = CompilerAdapter(compiler_engine, config, build_log)
    store = await compiler.compile_once(units)
    if store is None:
        return False
    bundler = BundlerAdapter(bundler_engine, registry, config.options, build_log)
    await asyncio.gather(*(_bundle_unit(bundler, unit, store, build_log) for unit in units))
    return True


async def watch(
    entries: Sequence[str | Path],
    *,
    compiler_engine: CompilerEngine,
    bundler_engine: BundlerEngine,
    config: BuildConfig,
    extra: Sequence[str | Path] = (),
    log: BuildLog | None = None,
) -> None:
    """Run an incremental build session until cancelled or a fatal error."""
    build_log = log or create_log(config)
    registry = BuildUnitRegistry()
    units = registry.get_many(entries)
    compiler = CompilerAdapter(compiler_engine, config, build_log)
    session = compiler.start_persistent(units, extra)
    bundler = BundlerAdapter(bundler_engine, registry, config.options, build_log)
    coordinator = WatchCoordinator(
        session=session,
        registry=registry,
        units=units,
        bundler=bundler,
        log=build_log,
        extra=extra,
    )
    await coordinator.run()
