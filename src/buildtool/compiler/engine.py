"""Request/response contract for the external compilation engine."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

ReadFileFn = Callable[[str], str | None]
WriteFileFn = Callable[[str, str], None]

CATEGORY_ERROR = "error"
CATEGORY_WARNING = "warning"
CATEGORY_SUGGESTION = "suggestion"
CATEGORY_MESSAGE = "message"


@dataclass(slots=True, frozen=True)
class Diagnostic:
    """One compiler diagnostic, optionally anchored to a file position."""

    message: str
    category: str = CATEGORY_ERROR
    file: str | None = None
    line: int | None = None
    column: int | None = None
    code: int | None = None

    @property
    def blocking(self) -> bool:
        return self.category == CATEGORY_ERROR

    def format(self) -> str:
        """Render in the familiar ``file(line,col): error TSnnnn: text`` shape."""
        prefix = ""
        if self.file is not None:
            prefix = self.file
            if self.line is not None:
                prefix += f"({self.line},{self.column or 1})"
            prefix += ": "
        code = f" TS{self.code}" if self.code is not None else ""
        return f"{prefix}{self.category}{code}: {self.message}"


@dataclass(slots=True, frozen=True)
class CompileRequest:
    """Everything an engine needs to compile a program without touching disk."""

    root_names: tuple[str, ...]
    include: tuple[str, ...]
    options: dict[str, object]
    read_file: ReadFileFn
    write_file: WriteFileFn

    def to_tsconfig(self) -> dict[str, object]:
        """Return the virtual tsconfig equivalent of this request."""
        return {"compilerOptions": dict(self.options), "include": list(self.include)}


@dataclass(slots=True, frozen=True)
class CompileResult:
    """Outcome of a one-shot compilation."""

    diagnostics: tuple[Diagnostic, ...] = ()
    emit_skipped: bool = False

    @property
    def has_blocking(self) -> bool:
        return any(diagnostic.blocking for diagnostic in self.diagnostics)


class DiagnosticSink(Protocol):
    """Callback receiving diagnostics from a persistent compilation."""

    def __call__(self, diagnostic: Diagnostic) -> None:
        """Consume one diagnostic."""


class CompilerEngine(Protocol):
    """External type-checking/compilation engine."""

    async def compile(self, request: CompileRequest) -> CompileResult:
        """Compile the full program once, emitting through ``request.write_file``."""

    async def watch(self, request: CompileRequest, sink: DiagnosticSink) -> None:
        """Keep an incremental compilation alive, re-emitting on source changes."""


@dataclass(slots=True)
class DiagnosticCollector:
    """Sink that keeps every diagnostic it receives."""

    diagnostics: list[Diagnostic] = field(default_factory=list)

    def __call__(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)
