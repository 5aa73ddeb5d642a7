"""Request/response contract for the external module bundler."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

FORMAT_ESM = "esm"
FORMAT_CJS = "cjs"

ExternalFn = Callable[[str], bool]


@dataclass(slots=True, frozen=True)
class LoadedModule:
    """Module text handed to the bundler, with its incoming source map."""

    code: str
    map: str | None = None


class BundlerPlugin(Protocol):
    """Resolution and loading hooks; returning None falls through."""

    name: str

    def resolve(self, specifier: str, importer: str | None) -> str | None:
        """Return a resolved path for a module specifier."""

    def load(self, path: str) -> LoadedModule | None:
        """Return module text for a resolved path."""


class SerializableSourceMap(Protocol):
    """Any source map object the engine returns."""

    def to_string(self) -> str:
        """Return the JSON text of the map."""


@dataclass(slots=True, frozen=True)
class BundleWarning:
    """Non-fatal bundler message."""

    code: str
    message: str


WarningHandler = Callable[[BundleWarning], None]


@dataclass(slots=True, frozen=True)
class BundleRequest:
    """Input module, external predicate, and ordered plugins for one bundle."""

    input: str
    external: ExternalFn
    plugins: tuple[BundlerPlugin, ...]
    on_warning: WarningHandler


@dataclass(slots=True, frozen=True)
class OutputOptions:
    """Per-format generation settings."""

    format: str
    file: str
    source_map: bool = False
    external_live_bindings: bool = True


@dataclass(slots=True, frozen=True)
class GeneratedArtifact:
    """One generated output file."""

    file_name: str
    code: str
    map: SerializableSourceMap | None = None


class BundleBuild(Protocol):
    """Module graph produced by the bundler, ready to generate outputs."""

    async def generate(self, options: OutputOptions) -> Sequence[GeneratedArtifact]:
        """Render the graph in one module format."""


class BundlerEngine(Protocol):
    """External module bundling engine."""

    async def bundle(self, request: BundleRequest) -> BundleBuild:
        """Build the module graph starting from ``request.input``."""

    def declaration_plugin(self) -> BundlerPlugin:
        """Return the engine's declaration-merging plugin."""

    def grammar_plugin(self) -> BundlerPlugin | None:
        """Return the engine's grammar-compiler plugin, if it ships one."""
