"""Bundling stage: engine contract, virtual resolution, and adapter."""

from .adapter import SUPPRESSED_DECLARATION_WARNINGS, BundleError, BundlerAdapter, compiled_path
from .emit import SOURCE_MAP_COMMENT, emit, write_text
from .engine import (
    FORMAT_CJS,
    FORMAT_ESM,
    BundleBuild,
    BundlerEngine,
    BundlerPlugin,
    BundleRequest,
    BundleWarning,
    GeneratedArtifact,
    LoadedModule,
    OutputOptions,
    SerializableSourceMap,
)
from .plugins import (
    RUNTIME_HELPER_MODULES,
    EnginePlugin,
    PluginChain,
    VirtualOutputPlugin,
    external_predicate,
    is_external,
)

__all__ = [
    "BundleBuild",
    "BundleError",
    "BundleRequest",
    "BundleWarning",
    "BundlerAdapter",
    "BundlerEngine",
    "BundlerPlugin",
    "EnginePlugin",
    "FORMAT_CJS",
    "FORMAT_ESM",
    "GeneratedArtifact",
    "LoadedModule",
    "OutputOptions",
    "PluginChain",
    "RUNTIME_HELPER_MODULES",
    "SOURCE_MAP_COMMENT",
    "SUPPRESSED_DECLARATION_WARNINGS",
    "SerializableSourceMap",
    "VirtualOutputPlugin",
    "compiled_path",
    "emit",
    "external_predicate",
    "is_external",
    "write_text",
]
