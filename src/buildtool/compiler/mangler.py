"""Rewrite ``///`` doc-comment runs into block comments the compiler keeps."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from pathlib import Path

from buildtool.paths import normalize_virtual_path, parent_dir

TextReader = Callable[[str], str | None]

_DOC_RUN_RE = re.compile(r"^(?:[ \t]*///.*\n)+", re.MULTILINE)
_INDENT_RE = re.compile(r"[ \t]*")
_MARKER_RE = re.compile(r"/// ?")
_SAME_PAGE_LINK_RE = re.compile(r"\]\(#")


def read_text_file(path: str) -> str | None:
    """Read a file from disk, returning None when it does not exist."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return None


def mangle_doc_comments(text: str, doc_base_url: str) -> str:
    """Merge each run of line-start ``///`` comments into one ``/** */`` block."""

    def _replace(match: re.Match[str]) -> str:
        run = match.group(0)
        indent = _INDENT_RE.match(run).group(0)  # type: ignore[union-attr]
        run = _SAME_PAGE_LINK_RE.sub(f"]({doc_base_url}#", run)
        body = "".join(
            _MARKER_RE.sub("", line, count=1).replace("*/", "*\\/")
            for line in run.splitlines(keepends=True)
        )
        return f"{indent}/**\n{body}{indent}*/\n"

    return _DOC_RUN_RE.sub(_replace, text)


class CommentMangler:
    """File reader that mangles doc comments only inside a unit's own dirs."""

    def __init__(
        self,
        dirs: Iterable[str | Path],
        doc_base_url: str,
        reader: TextReader = read_text_file,
    ) -> None:
        self._dirs = frozenset(normalize_virtual_path(d) for d in dirs)
        self._doc_base_url = doc_base_url
        self._reader = reader

    def owns(self, path: str) -> bool:
        """Return True when the file sits directly in one of the unit dirs."""
        return parent_dir(normalize_virtual_path(path)) in self._dirs

    def read(self, path: str) -> str | None:
        text = self._reader(path)
        if text is None or not self.owns(path):
            return text
        return mangle_doc_comments(text, self._doc_base_url)
