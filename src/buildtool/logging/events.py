"""Structured JSONL build event log."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path


@dataclass(slots=True, frozen=True)
class BuildEvent:
    """One recorded compile, bundle, or watch-batch outcome."""

    timestamp: str
    kind: str
    unit: str | None
    ok: bool
    error: str | None = None
    metadata: dict[str, object] = field(default_factory=dict)


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonlEventLog:
    """Build outcomes appended to a JSONL file, one event per line.

    The directory is created on the first event, so a build that records
    nothing leaves no trace on disk.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._ready = False

    def record(
        self,
        kind: str,
        *,
        unit: str | None = None,
        ok: bool = True,
        error: str | None = None,
        metadata: dict[str, object] | None = None,
    ) -> BuildEvent:
        """Stamp an outcome with the current time and append it."""
        event = BuildEvent(
            timestamp=utc_timestamp(),
            kind=kind,
            unit=unit,
            ok=ok,
            error=error,
            metadata=dict(metadata or {}),
        )
        self.append(event)
        return event

    def append(self, event: BuildEvent) -> None:
        if not self._ready:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._ready = True
        line = json.dumps(asdict(event), sort_keys=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
