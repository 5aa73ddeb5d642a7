"""Command-line entrypoint for one-shot and watch builds."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from buildtool.config import BuildConfig, CliOverrides, ConfigError, load_effective_config
from buildtool.engines import EngineError, SubprocessBundlerEngine, SubprocessCompilerEngine
from buildtool.pipeline import build, create_log, watch


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for build and watch invocations."""
    parser = argparse.ArgumentParser(prog="buildtool")
    parser.add_argument("--workspace", required=False, default=".")
    parser.add_argument("--sourcemap", dest="source_map", action="store_true", default=None)
    parser.add_argument(
        "--no-pure", dest="pure_annotations", action="store_false", default=None
    )
    parser.add_argument("--debounce-ms", type=int, required=False, default=None)
    parser.add_argument("--event-log", required=False, default=None)
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser("build", help="compile and bundle once")
    build_parser.add_argument("entries", nargs="+")

    watch_parser = subparsers.add_parser("watch", help="rebuild units as their sources change")
    watch_parser.add_argument("entries", nargs="+")
    watch_parser.add_argument("--extra", action="append", default=[])
    return parser


def _require_command(command: tuple[str, ...], name: str) -> tuple[str, ...]:
    if not command:
        raise ConfigError(f"Config field 'engines.{name}' must name the engine command.")
    return command


async def _run(args: argparse.Namespace, config: BuildConfig) -> bool:
    log = create_log(config)
    compiler_command = _require_command(config.engines.compiler, "compiler")
    bundler_command = _require_command(config.engines.bundler, "bundler")
    compiler_engine = SubprocessCompilerEngine(compiler_command)
    bundler_engine = SubprocessBundlerEngine(bundler_command)
    try:
        if args.command == "watch":
            await watch(
                args.entries,
                compiler_engine=compiler_engine,
                bundler_engine=bundler_engine,
                config=config,
                extra=args.extra,
                log=log,
            )
            return True
        return await build(
            args.entries,
            compiler_engine=compiler_engine,
            bundler_engine=bundler_engine,
            config=config,
            log=log,
        )
    finally:
        await bundler_engine.aclose()


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the buildtool command."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    overrides = CliOverrides(
        source_map=args.source_map,
        pure_annotations=args.pure_annotations,
        debounce_ms=args.debounce_ms,
        event_log=Path(args.event_log) if args.event_log is not None else None,
    )
    try:
        config = load_effective_config(Path(args.workspace), overrides)
        ok = asyncio.run(_run(args, config))
    except (ConfigError, EngineError) as error:
        parser.exit(2, f"buildtool: {error}\n")
    except KeyboardInterrupt:
        return 130
    return 0 if ok else 1
