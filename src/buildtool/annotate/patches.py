"""Positional text edits applied in a single left-to-right pass."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import AnyStr


@dataclass(slots=True, frozen=True)
class Patch:
    """Insert ``text`` at ``start``, replacing up to ``end`` when given."""

    start: int
    text: str
    end: int | None = None

    @property
    def stop(self) -> int:
        return self.start if self.end is None else self.end


def sort_patches(patches: Iterable[Patch]) -> list[Patch]:
    """Order patches by position and drop identical neighbours."""
    ordered: list[Patch] = []
    for patch in sorted(patches, key=lambda item: item.start):
        if ordered and ordered[-1].start == patch.start and ordered[-1].text == patch.text:
            continue
        ordered.append(patch)
    return ordered


def apply_patches(source: AnyStr, patches: Iterable[Patch]) -> AnyStr:
    """Return ``source`` with every patch applied.

    Positions index into ``source`` as given (byte offsets for ``bytes``).
    Overlapping replacements are rejected.
    """
    ordered = sort_patches(patches)
    is_bytes = isinstance(source, bytes)
    pieces: list[AnyStr] = []
    cursor = 0
    for patch in ordered:
        if patch.start < cursor:
            raise ValueError(f"Patch at {patch.start} overlaps a replacement ending at {cursor}")
        if patch.stop < patch.start or patch.stop > len(source):
            raise ValueError(f"Patch range {patch.start}-{patch.stop} is out of bounds")
        pieces.append(source[cursor : patch.start])
        text = patch.text.encode("utf-8") if is_bytes else patch.text
        pieces.append(text)  # type: ignore[arg-type]
        cursor = patch.stop
    pieces.append(source[cursor:])
    return source[:0].join(pieces)
