"""Virtual output storage."""

from .store import DEFAULT_DEBOUNCE_SECONDS, ChangeWatcher, VirtualOutputStore

__all__ = ["ChangeWatcher", "DEFAULT_DEBOUNCE_SECONDS", "VirtualOutputStore"]
