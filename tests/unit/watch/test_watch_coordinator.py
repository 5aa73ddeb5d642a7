from __future__ import annotations

import asyncio
import io
from pathlib import Path

import pytest
from fakes import FakeBundlerEngine, FakeCompilerEngine, make_config, wait_until, write_unit

from buildtool.bundler import BundleRequest, BundlerAdapter, compiled_path
from buildtool.compiler import CompilerAdapter, PersistentSession
from buildtool.config import BuildOptions
from buildtool.logging import BuildLog
from buildtool.units import BuildUnitRegistry
from buildtool.watch import (
    STATE_IDLE,
    STATE_REBUILDING,
    UnitResolutionError,
    WatchCoordinator,
    source_path_for,
)


class GatedBundlerEngine(FakeBundlerEngine):
    """Holds every bundle of the state unit until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()
        self.trace: list[str] = []

    async def bundle(self, request: BundleRequest):
        label = "state" if "/state/" in request.input else "view"
        self.trace.append(f"start {label}")
        if label == "state":
            await self.release.wait()
        build = await super().bundle(request)
        self.trace.append(f"end {label}")
        return build


def _setup(tmp_path: Path, bundler_engine: FakeBundlerEngine, extra: list[Path] | None = None):
    state = write_unit(
        tmp_path / "state",
        "@demo/state",
        "export const one = 1;\n",
        tests={"test-one.ts": "import { one } from '../src/index.js';\n"},
    )
    view = write_unit(tmp_path / "view", "@demo/view", "export const two = 2;\n")
    registry = BuildUnitRegistry()
    units = registry.get_many([state, view])
    out = io.StringIO()
    err = io.StringIO()
    log = BuildLog(out=out, err=err)
    compiler = CompilerAdapter(FakeCompilerEngine(), make_config(tmp_path), log)
    bundler = BundlerAdapter(bundler_engine, registry, BuildOptions(), log)
    return registry, units, compiler, bundler, log, out, err, extra or []


async def _coordinator(
    tmp_path: Path, bundler_engine: FakeBundlerEngine, extra: list[Path] | None = None
):
    setup = _setup(tmp_path, bundler_engine, extra)
    registry, units, compiler, bundler, log, out, err, extra = setup
    store = await compiler.compile_once(units, extra)
    assert store is not None
    task = asyncio.get_running_loop().create_task(asyncio.sleep(3600))
    session = PersistentSession(store=store, task=task)
    coordinator = WatchCoordinator(
        session=session, registry=registry, units=units, bundler=bundler, log=log, extra=extra
    )
    return coordinator, units, out, err


def test_source_path_for_compiled_outputs() -> None:
    assert source_path_for("/w/a/src/index.js") == "/w/a/src/index.ts"
    assert source_path_for("/w/a/src/index.d.ts") == "/w/a/src/index.ts"


def test_classify_splits_direct_writes_and_dirty_units(tmp_path: Path) -> None:
    async def scenario() -> None:
        coordinator, units, _, _ = await _coordinator(tmp_path, FakeBundlerEngine())
        state, view = units
        test_js = compiled_path(state.tests[0], ".js")
        batch = [
            compiled_path(view.entry, ".js"),
            compiled_path(view.entry, ".d.ts"),
            test_js,
        ]

        direct, dirty = coordinator.classify(batch)

        assert direct == [test_js]
        assert dirty == [view]
        coordinator._session.stop()

    asyncio.run(scenario())


def test_unknown_path_is_fatal(tmp_path: Path) -> None:
    async def scenario() -> None:
        coordinator, _, _, _ = await _coordinator(tmp_path, FakeBundlerEngine())
        try:
            with pytest.raises(UnitResolutionError, match="No package found for"):
                coordinator.classify([str(tmp_path / "elsewhere" / "src" / "index.js")])
        finally:
            coordinator._session.stop()

    asyncio.run(scenario())


def test_only_dirty_unit_is_rebundled(tmp_path: Path) -> None:
    engine = FakeBundlerEngine()

    async def scenario() -> None:
        coordinator, units, out, _ = await _coordinator(tmp_path, engine)
        _, view = units
        rebuilt = await coordinator.process([compiled_path(view.entry, ".js")])
        coordinator._session.stop()
        assert rebuilt == [view]
        assert coordinator.state == STATE_IDLE
        assert "Bundling state, view\n" in out.getvalue()
        assert out.getvalue().endswith("Bundling done.\n")

    asyncio.run(scenario())

    assert all("/view/" in path for path in engine.inputs())
    assert (tmp_path / "view" / "dist" / "index.js").exists()
    assert not (tmp_path / "state" / "dist").exists()


def test_test_outputs_are_written_directly(tmp_path: Path) -> None:
    engine = FakeBundlerEngine()

    async def scenario() -> None:
        coordinator, units, _, _ = await _coordinator(tmp_path, engine)
        state, _ = units
        rebuilt = await coordinator.process([compiled_path(state.tests[0], ".js")])
        coordinator._session.stop()
        assert rebuilt == []

    asyncio.run(scenario())

    assert engine.inputs() == []
    assert (tmp_path / "state" / "test" / "test-one.js").read_text(encoding="utf-8") == (
        "import { one } from '../src/index.js';\n"
    )


def test_extra_sources_pass_through(tmp_path: Path) -> None:
    extra = tmp_path / "demo" / "demo.ts"
    extra.parent.mkdir()
    extra.write_text("export const demo = 1;\n", encoding="utf-8")
    engine = FakeBundlerEngine()

    async def scenario() -> None:
        coordinator, _, _, _ = await _coordinator(tmp_path, engine, [extra])
        await coordinator.process([compiled_path(extra.resolve(), ".js")])
        coordinator._session.stop()

    asyncio.run(scenario())

    assert engine.inputs() == []
    assert (tmp_path / "demo" / "demo.js").read_text(encoding="utf-8") == "export const demo = 1;\n"


def test_failing_unit_does_not_block_others(tmp_path: Path) -> None:
    engine = FakeBundlerEngine(fail_when=lambda path: "/state/" in path)

    async def scenario() -> None:
        coordinator, units, _, err = await _coordinator(tmp_path, engine)
        state, view = units
        rebuilt = await coordinator.process(
            [compiled_path(state.entry, ".js"), compiled_path(view.entry, ".js")]
        )
        coordinator._session.stop()
        assert rebuilt == [view]
        assert err.getvalue().startswith("Failed to bundle state:\ncannot bundle ")

    asyncio.run(scenario())

    assert (tmp_path / "view" / "dist" / "index.cjs").exists()
    assert not (tmp_path / "state" / "dist").exists()


def test_batch_arriving_mid_rebuild_waits_for_current_cycle(tmp_path: Path) -> None:
    engine = GatedBundlerEngine()

    async def scenario() -> None:
        coordinator, units, out, _ = await _coordinator(tmp_path, engine)
        state, view = units
        # Drop the initial compile batch so only the batches below are processed.
        coordinator.store.flush()
        runner = asyncio.get_running_loop().create_task(coordinator.run())
        try:
            coordinator.on_change([compiled_path(state.entry, ".js")])
            await wait_until(lambda: coordinator.state == STATE_REBUILDING)
            coordinator.on_change([compiled_path(view.entry, ".js")])
            await asyncio.sleep(0.05)
            assert engine.trace == ["start state"]

            engine.release.set()
            await wait_until(lambda: out.getvalue().count("Bundling done.") == 2)
        finally:
            runner.cancel()
            await asyncio.gather(runner, return_exceptions=True)

    asyncio.run(scenario())

    last_state = max(i for i, entry in enumerate(engine.trace) if entry == "end state")
    first_view = engine.trace.index("start view")
    assert last_state < first_view
