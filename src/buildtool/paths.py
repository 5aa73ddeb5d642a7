"""Virtual path normalization shared by the compiler and bundler stages."""

from __future__ import annotations

import posixpath
import re
from pathlib import Path
from typing import Final

WINDOWS_ABSOLUTE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")
_EXTENSION_PATTERN: Final[re.Pattern[str]] = re.compile(r"\.\w+$")


def normalize_virtual_path(path: str | Path) -> str:
    """Return the canonical forward-slash form used as a virtual file key."""
    normalized = str(path).replace("\\", "/")
    if not normalized:
        return normalized
    drive = ""
    if WINDOWS_ABSOLUTE_PATTERN.match(normalized):
        drive, normalized = normalized[:2], normalized[2:]
    return drive + posixpath.normpath(normalized)


def is_path_specifier(specifier: str) -> bool:
    """Return True for relative, rooted, or drive-letter module specifiers."""
    if specifier.startswith(("./", "../", "/")) or specifier in {".", ".."}:
        return True
    return WINDOWS_ABSOLUTE_PATTERN.match(specifier) is not None


def has_extension(path: str) -> bool:
    """Return True when the final path segment carries an extension."""
    return _EXTENSION_PATTERN.search(posixpath.basename(path)) is not None


def replace_suffix(path: str, old: str, new: str) -> str:
    """Swap a trailing suffix, leaving the path unchanged when it does not match."""
    if path.endswith(old):
        return path[: len(path) - len(old)] + new
    return path


def parent_dir(path: str) -> str:
    """Return the virtual parent directory of a normalized path."""
    return posixpath.dirname(path)
