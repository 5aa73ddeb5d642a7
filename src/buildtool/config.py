"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

MAX_DEBOUNCE_MS_CAP = 10_000
DEFAULT_DEBOUNCE_MS = 100
DEFAULT_DOC_BASE_URL = "https://codemirror.net/6/docs/ref/"
CONFIG_FILE_NAME = "buildtool.toml"

DEFAULT_LIB = ("es6", "scripthost", "dom")
DEFAULT_TYPES = ("mocha",)


class ConfigError(ValueError):
    """Raised when a configuration value has the wrong shape."""


@dataclass(slots=True, frozen=True)
class BuildOptions:
    """Per-invocation output switches."""

    source_map: bool = False
    pure_annotations: bool = True


@dataclass(slots=True, frozen=True)
class CompilerSettings:
    """Language level and checking settings handed to the compiler engine."""

    target: str = "es6"
    module: str = "es2020"
    lib: tuple[str, ...] = DEFAULT_LIB
    types: tuple[str, ...] = DEFAULT_TYPES
    strict: bool = True


@dataclass(slots=True, frozen=True)
class EngineCommands:
    """Argv used to start bridged engine processes."""

    compiler: tuple[str, ...] = ()
    bundler: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class BuildConfig:
    """Fully merged build configuration."""

    workspace: Path
    options: BuildOptions
    compiler: CompilerSettings
    doc_base_url: str
    debounce_ms: int
    engines: EngineCommands
    event_log: Path | None

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot."""
        return {
            "workspace": str(self.workspace),
            "build": {
                "source_map": self.options.source_map,
                "pure_annotations": self.options.pure_annotations,
            },
            "compiler": {
                "target": self.compiler.target,
                "module": self.compiler.module,
                "lib": list(self.compiler.lib),
                "types": list(self.compiler.types),
                "strict": self.compiler.strict,
            },
            "docs": {"base_url": self.doc_base_url},
            "watch": {"debounce_ms": self.debounce_ms},
            "engines": {
                "compiler": list(self.engines.compiler),
                "bundler": list(self.engines.bundler),
            },
            "log": {"event_log": str(self.event_log) if self.event_log is not None else None},
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    source_map: bool | None = None
    pure_annotations: bool | None = None
    debounce_ms: int | None = None
    event_log: Path | None = None


def default_config(workspace: Path) -> BuildConfig:
    """Build default config for a workspace root."""
    return BuildConfig(
        workspace=workspace.resolve(),
        options=BuildOptions(),
        compiler=CompilerSettings(),
        doc_base_url=DEFAULT_DOC_BASE_URL,
        debounce_ms=DEFAULT_DEBOUNCE_MS,
        engines=EngineCommands(),
        event_log=None,
    )


def load_config_file(workspace: Path) -> dict[str, object]:
    """Load optional buildtool.toml from the workspace root."""
    config_path = workspace / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ConfigError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ConfigError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ConfigError(f"Config field '{section}.{field}' must contain only strings.")
        output.append(item)
    return tuple(output)


def _optional_bool(value: object, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"Config field '{name}' must be a boolean.")
    return value


def _optional_str(value: object, name: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str) or not value:
        raise ConfigError(f"Config field '{name}' must be a non-empty string.")
    return value


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ConfigError(f"Config field '{name}' must be <= {cap}.")
    return value


def merge_config(
    base: BuildConfig, payload: dict[str, object], overrides: CliOverrides
) -> BuildConfig:
    """Merge defaults, workspace config, then CLI/startup overrides."""
    build_payload = _get_table(payload, "build")
    compiler_payload = _get_table(payload, "compiler")
    docs_payload = _get_table(payload, "docs")
    watch_payload = _get_table(payload, "watch")
    engines_payload = _get_table(payload, "engines")
    log_payload = _get_table(payload, "log")

    options = BuildOptions(
        source_map=_optional_bool(
            build_payload.get("source_map"), "build.source_map", base.options.source_map
        ),
        pure_annotations=_optional_bool(
            build_payload.get("pure_annotations"),
            "build.pure_annotations",
            base.options.pure_annotations,
        ),
    )

    lib = base.compiler.lib
    if "lib" in compiler_payload:
        lib = _tuple_of_strings(compiler_payload["lib"], "compiler", "lib")
    types = base.compiler.types
    if "types" in compiler_payload:
        types = _tuple_of_strings(compiler_payload["types"], "compiler", "types")
    compiler = CompilerSettings(
        target=_optional_str(
            compiler_payload.get("target"), "compiler.target", base.compiler.target
        ),
        module=_optional_str(
            compiler_payload.get("module"), "compiler.module", base.compiler.module
        ),
        lib=lib,
        types=types,
        strict=_optional_bool(
            compiler_payload.get("strict"), "compiler.strict", base.compiler.strict
        ),
    )

    engines = base.engines
    if "compiler" in engines_payload:
        engines = EngineCommands(
            compiler=_tuple_of_strings(engines_payload["compiler"], "engines", "compiler"),
            bundler=engines.bundler,
        )
    if "bundler" in engines_payload:
        engines = EngineCommands(
            compiler=engines.compiler,
            bundler=_tuple_of_strings(engines_payload["bundler"], "engines", "bundler"),
        )

    event_log = base.event_log
    if "event_log" in log_payload:
        raw_event_log = _optional_str(log_payload["event_log"], "log.event_log", "")
        event_log = (base.workspace / raw_event_log).resolve()

    merged = BuildConfig(
        workspace=base.workspace,
        options=options,
        compiler=compiler,
        doc_base_url=_optional_str(
            docs_payload.get("base_url"), "docs.base_url", base.doc_base_url
        ),
        debounce_ms=_optional_positive_int_with_cap(
            watch_payload.get("debounce_ms"),
            "watch.debounce_ms",
            base.debounce_ms,
            MAX_DEBOUNCE_MS_CAP,
        ),
        engines=engines,
        event_log=event_log,
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: BuildConfig, overrides: CliOverrides) -> BuildConfig:
    """Apply startup overrides at highest precedence."""
    options = BuildOptions(
        source_map=(
            overrides.source_map
            if overrides.source_map is not None
            else config.options.source_map
        ),
        pure_annotations=(
            overrides.pure_annotations
            if overrides.pure_annotations is not None
            else config.options.pure_annotations
        ),
    )
    debounce_ms = _optional_positive_int_with_cap(
        overrides.debounce_ms,
        "overrides.debounce_ms",
        config.debounce_ms,
        MAX_DEBOUNCE_MS_CAP,
    )
    event_log = config.event_log
    if overrides.event_log is not None:
        event_log = overrides.event_log.resolve()
    return BuildConfig(
        workspace=config.workspace,
        options=options,
        compiler=config.compiler,
        doc_base_url=config.doc_base_url,
        debounce_ms=debounce_ms,
        engines=config.engines,
        event_log=event_log,
    )


def load_effective_config(workspace: Path, overrides: CliOverrides | None = None) -> BuildConfig:
    """Load effective config using merge order defaults -> workspace config -> overrides."""
    resolved = workspace.resolve()
    base = default_config(resolved)
    payload = load_config_file(resolved)
    return merge_config(base, payload, overrides or CliOverrides())
