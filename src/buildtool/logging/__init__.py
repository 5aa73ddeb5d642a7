"""Build logging utilities."""

from .console import BuildLog
from .events import BuildEvent, JsonlEventLog, utc_timestamp

__all__ = ["BuildEvent", "BuildLog", "JsonlEventLog", "utc_timestamp"]
