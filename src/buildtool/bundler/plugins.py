"""Bundler plugins that resolve modules out of the virtual output store."""

from __future__ import annotations

import posixpath
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from buildtool.bundler.engine import BundlerPlugin, LoadedModule
from buildtool.output import VirtualOutputStore
from buildtool.paths import has_extension, is_path_specifier, normalize_virtual_path

RUNTIME_HELPER_MODULES = frozenset({"tslib"})


def is_external(specifier: str, in_build_names: Iterable[str] = ()) -> bool:
    """Return True for bare specifiers the consuming environment must supply."""
    if is_path_specifier(specifier):
        return False
    if specifier in RUNTIME_HELPER_MODULES:
        return False
    return specifier not in set(in_build_names)


def external_predicate(in_build_names: Iterable[str]) -> Callable[[str], bool]:
    names = frozenset(in_build_names)
    return lambda specifier: is_external(specifier, names)


@dataclass(slots=True, frozen=True)
class EnginePlugin:
    """Descriptor for a plugin implemented inside the bundler engine itself."""

    name: str
    options: dict[str, object] = field(default_factory=dict)

    def resolve(self, specifier: str, importer: str | None) -> str | None:
        return None

    def load(self, path: str) -> LoadedModule | None:
        return None


class VirtualOutputPlugin:
    """Serves compiled modules from the store, else defers to ``delegate``.

    ``aliases`` maps in-build package names to the virtual entry module, so a
    unit importing a sibling by name bundles the sibling's compiled output.
    """

    def __init__(
        self,
        store: VirtualOutputStore,
        extension: str,
        delegate: BundlerPlugin | None = None,
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        self.name = f"virtual-output{extension}"
        self._store = store
        self._extension = extension
        self._delegate = delegate
        self._aliases = dict(aliases or {})

    def candidate(self, specifier: str, importer: str | None) -> str:
        """Return the virtual path a specifier would map to."""
        if specifier in self._aliases:
            full = self._aliases[specifier]
        elif importer is not None and specifier.startswith("."):
            full = posixpath.join(posixpath.dirname(normalize_virtual_path(importer)), specifier)
        else:
            full = specifier
        full = normalize_virtual_path(full)
        if not has_extension(full):
            full += self._extension
        return full

    def resolve(self, specifier: str, importer: str | None) -> str | None:
        full = self.candidate(specifier, importer)
        if self._store.has(full):
            return full
        if self._delegate is not None:
            return self._delegate.resolve(specifier, importer)
        return None

    def load(self, path: str) -> LoadedModule | None:
        code = self._store.read(path)
        if code is not None:
            return LoadedModule(code=code, map=self._store.read_map(path))
        if self._delegate is not None:
            return self._delegate.load(path)
        return None


class PluginChain:
    """Ordered plugin list; the first plugin with an answer wins."""

    name = "chain"

    def __init__(self, plugins: Iterable[BundlerPlugin]) -> None:
        self._plugins = tuple(plugins)

    @property
    def plugins(self) -> tuple[BundlerPlugin, ...]:
        return self._plugins

    def resolve(self, specifier: str, importer: str | None) -> str | None:
        for plugin in self._plugins:
            resolved = plugin.resolve(specifier, importer)
            if resolved is not None:
                return resolved
        return None

    def load(self, path: str) -> LoadedModule | None:
        for plugin in self._plugins:
            loaded = plugin.load(path)
            if loaded is not None:
                return loaded
        return None
