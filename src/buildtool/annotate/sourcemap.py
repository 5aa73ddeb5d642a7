"""Source map helpers: serialization and column shifting after annotation."""

from __future__ import annotations

import json
from bisect import bisect_right
from collections.abc import Iterable
from dataclasses import dataclass, field

from buildtool.annotate.patches import Patch, sort_patches

_BASE64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_BASE64_VALUES = {char: index for index, char in enumerate(_BASE64)}
_VLQ_SHIFT = 5
_VLQ_CONTINUATION = 1 << _VLQ_SHIFT
_VLQ_MASK = _VLQ_CONTINUATION - 1


@dataclass(slots=True)
class SourceMap:
    """Revision 3 source map with a string-serializable form."""

    mappings: str
    sources: list[str] = field(default_factory=list)
    names: list[str] = field(default_factory=list)
    file: str | None = None
    sources_content: list[str | None] | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"version": 3}
        if self.file is not None:
            payload["file"] = self.file
        payload["sources"] = list(self.sources)
        if self.sources_content is not None:
            payload["sourcesContent"] = list(self.sources_content)
        payload["names"] = list(self.names)
        payload["mappings"] = self.mappings
        return payload

    def to_string(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_string(cls, text: str) -> SourceMap:
        payload = json.loads(text)
        if not isinstance(payload, dict) or not isinstance(payload.get("mappings"), str):
            raise ValueError("Source map must be an object with a 'mappings' string.")
        return cls(
            mappings=payload["mappings"],
            sources=list(payload.get("sources", [])),
            names=list(payload.get("names", [])),
            file=payload.get("file"),
            sources_content=payload.get("sourcesContent"),
        )


def decode_vlq(segment: str) -> list[int]:
    """Decode one base64 VLQ mapping segment into its integer fields."""
    values: list[int] = []
    shift = 0
    value = 0
    for char in segment:
        digit = _BASE64_VALUES[char]
        value += (digit & _VLQ_MASK) << shift
        if digit & _VLQ_CONTINUATION:
            shift += _VLQ_SHIFT
            continue
        negative = value & 1
        value >>= 1
        values.append(-value if negative else value)
        value = 0
        shift = 0
    return values


def encode_vlq(values: Iterable[int]) -> str:
    """Encode integer fields as one base64 VLQ mapping segment."""
    out: list[str] = []
    for number in values:
        vlq = (-number << 1) | 1 if number < 0 else number << 1
        while True:
            digit = vlq & _VLQ_MASK
            vlq >>= _VLQ_SHIFT
            if vlq:
                digit |= _VLQ_CONTINUATION
            out.append(_BASE64[digit])
            if not vlq:
                break
    return "".join(out)


def _utf16_length(data: bytes) -> int:
    return len(data.decode("utf-8", errors="replace").encode("utf-16-le")) // 2


def _column_shifts(source: bytes, patches: Iterable[Patch]) -> dict[int, list[tuple[int, int]]]:
    line_starts = [0]
    line_starts.extend(index + 1 for index, byte in enumerate(source) if byte == 0x0A)
    shifts: dict[int, list[tuple[int, int]]] = {}
    for patch in sort_patches(patches):
        line = bisect_right(line_starts, patch.start) - 1
        column = _utf16_length(source[line_starts[line] : patch.start])
        delta = _utf16_length(patch.text.encode("utf-8")) - _utf16_length(
            source[patch.start : patch.stop]
        )
        if delta:
            shifts.setdefault(line, []).append((column, delta))
    return shifts


def _shift_line(line: str, shifts: list[tuple[int, int]]) -> str:
    if not line:
        return line
    segments: list[str] = []
    previous_old = 0
    previous_new = 0
    for raw in line.split(","):
        fields = decode_vlq(raw)
        if not fields:
            segments.append(raw)
            continue
        old_column = previous_old + fields[0]
        new_column = old_column + sum(delta for column, delta in shifts if column <= old_column)
        fields[0] = new_column - previous_new
        previous_old = old_column
        previous_new = new_column
        segments.append(encode_vlq(fields))
    return ",".join(segments)


def shift_source_map(map_text: str, code: str, patches: Iterable[Patch]) -> str:
    """Adjust generated columns in ``map_text`` for patches applied to ``code``.

    Patches must not add or remove line breaks.
    """
    source_map = SourceMap.from_string(map_text)
    shifts = _column_shifts(code.encode("utf-8"), patches)
    if not shifts:
        return source_map.to_string()
    lines = source_map.mappings.split(";")
    for index, line_shifts in shifts.items():
        if index < len(lines):
            lines[index] = _shift_line(lines[index], line_shifts)
    source_map.mappings = ";".join(lines)
    return source_map.to_string()
