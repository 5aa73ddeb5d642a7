"""In-memory virtual output store with debounced change notification."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path

from buildtool.paths import normalize_virtual_path

DEFAULT_DEBOUNCE_SECONDS = 0.1
MAP_SUFFIX = ".map"

ChangeWatcher = Callable[[Sequence[str]], None]


class VirtualOutputStore:
    """Content-deduplicated file table shared by compilation and bundling.

    Writes that reproduce the stored content are ignored, so a compiler pass
    that re-emits an unchanged project settles without notifying anyone.
    """

    def __init__(self, debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS) -> None:
        self._files: dict[str, str] = {}
        self._maps: dict[str, str] = {}
        self._changed: list[str] = []
        self._changed_set: set[str] = set()
        self._watchers: list[ChangeWatcher] = []
        self._debounce_seconds = debounce_seconds
        self._timer: asyncio.TimerHandle | None = None

    def write(self, path: str | Path, content: str) -> None:
        """Record content for a path; identical content is a no-op."""
        key = normalize_virtual_path(path)
        if key.endswith(MAP_SUFFIX):
            self._maps[key[: -len(MAP_SUFFIX)]] = content
            return
        if self._files.get(key) == content:
            return
        self._files[key] = content
        if key not in self._changed_set:
            self._changed_set.add(key)
            self._changed.append(key)
        self._schedule_flush()

    def read(self, path: str | Path) -> str | None:
        """Return stored text for a path, if any."""
        return self._files.get(normalize_virtual_path(path))

    def read_map(self, path: str | Path) -> str | None:
        """Return the source map text written alongside a path, if any."""
        return self._maps.get(normalize_virtual_path(path))

    def has(self, path: str | Path) -> bool:
        return normalize_virtual_path(path) in self._files

    def paths(self) -> tuple[str, ...]:
        """Return stored paths in first-write order."""
        return tuple(self._files.keys())

    def pending(self) -> tuple[str, ...]:
        """Return paths recorded since the last flush."""
        return tuple(self._changed)

    def add_watcher(self, watcher: ChangeWatcher) -> None:
        """Subscribe a callback to debounced change batches."""
        self._watchers.append(watcher)

    def flush(self) -> None:
        """Deliver the pending batch to watchers immediately."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._changed:
            return
        batch = tuple(self._changed)
        self._changed = []
        self._changed_set = set()
        for watcher in list(self._watchers):
            watcher(batch)

    def _schedule_flush(self) -> None:
        if not self._watchers:
            return
        if self._timer is not None:
            self._timer.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the batch stays pending until flush() is called.
            self._timer = None
            return
        self._timer = loop.call_later(self._debounce_seconds, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.flush()
