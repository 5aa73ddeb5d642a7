"""Human-readable build output with an optional structured event trail."""

from __future__ import annotations

import sys
from typing import TextIO

from buildtool.logging.events import JsonlEventLog


class BuildLog:
    """Routes informational and error lines to separate streams.

    When an event log is attached, outcomes recorded with ``event`` are also
    appended to it so watch sessions leave an inspectable trail.
    """

    def __init__(
        self,
        out: TextIO | None = None,
        err: TextIO | None = None,
        events: JsonlEventLog | None = None,
    ) -> None:
        self._out = out
        self._err = err
        self._events = events

    @property
    def events(self) -> JsonlEventLog | None:
        return self._events

    def info(self, message: str) -> None:
        stream = self._out if self._out is not None else sys.stdout
        stream.write(f"{message}\n")
        stream.flush()

    def error(self, message: str) -> None:
        stream = self._err if self._err is not None else sys.stderr
        stream.write(f"{message}\n")
        stream.flush()

    def event(
        self,
        kind: str,
        *,
        unit: str | None = None,
        ok: bool = True,
        error: str | None = None,
        metadata: dict[str, object] | None = None,
    ) -> None:
        """Record a structured outcome when an event log is configured."""
        if self._events is None:
            return
        self._events.record(kind, unit=unit, ok=ok, error=error, metadata=metadata)
