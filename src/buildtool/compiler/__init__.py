"""Compilation stage: engine contract, doc-comment mangling, and adapter."""

from .adapter import CompilerAdapter, PersistentSession
from .engine import (
    CATEGORY_ERROR,
    CATEGORY_MESSAGE,
    CATEGORY_SUGGESTION,
    CATEGORY_WARNING,
    CompileRequest,
    CompileResult,
    CompilerEngine,
    Diagnostic,
    DiagnosticCollector,
    DiagnosticSink,
)
from .mangler import CommentMangler, mangle_doc_comments, read_text_file
from .tsconfig import compiler_options, include_globs, root_names, unit_dirs

__all__ = [
    "CATEGORY_ERROR",
    "CATEGORY_MESSAGE",
    "CATEGORY_SUGGESTION",
    "CATEGORY_WARNING",
    "CommentMangler",
    "CompileRequest",
    "CompileResult",
    "CompilerAdapter",
    "CompilerEngine",
    "Diagnostic",
    "DiagnosticCollector",
    "DiagnosticSink",
    "PersistentSession",
    "compiler_options",
    "include_globs",
    "mangle_doc_comments",
    "read_text_file",
    "root_names",
    "unit_dirs",
]
