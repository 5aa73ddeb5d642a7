"""Insert ``/*@__PURE__*/`` markers before top-level calls in generated code.

Calls inside function or class bodies are left alone: they only run when the
enclosing top-level binding is used, which the downstream bundler already
tracks. Positions are byte offsets into the UTF-8 encoded source.
"""

from __future__ import annotations

import re
from typing import Any

import tree_sitter_javascript
from tree_sitter import Language, Parser

from buildtool.annotate.patches import Patch, apply_patches
from buildtool.annotate.sourcemap import shift_source_map

PURE_MARKER = "/*@__PURE__*/"
ENUM_LOOKBEHIND_BYTES = 100

_LANGUAGE = Language(tree_sitter_javascript.language())

_OPAQUE_KINDS = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "function_expression",
        "function",
        "generator_function",
        "arrow_function",
        "method_definition",
    }
)
_FUNCTION_EXPRESSION_KINDS = frozenset({"function_expression", "function"})
_CLASS_KINDS = frozenset({"class_declaration", "class"})
_CALL_KINDS = frozenset({"call_expression", "new_expression"})
_ENUM_DECLARATION_RE = re.compile(rb"(?<![\w$])(?:var|let|const)\s+([\w$]+)\s*(;)\s*$")


class AnnotationError(ValueError):
    """Raised when generated code cannot be parsed for annotation."""


def _parse(source: bytes) -> Any:
    tree = Parser(_LANGUAGE).parse(source)
    if tree.root_node.has_error:
        raise AnnotationError("Generated code contains syntax the annotator cannot parse.")
    return tree.root_node


def _node_text(source: bytes, node: Any) -> bytes:
    return source[node.start_byte : node.end_byte]


def _strip_parens(node: Any) -> Any:
    while node is not None and node.type == "parenthesized_expression":
        inner = [child for child in node.named_children if child.type != "comment"]
        if len(inner) != 1:
            return node
        node = inner[0]
    return node


def _single_parameter(source: bytes, function: Any) -> bytes | None:
    parameters = function.child_by_field_name("parameters")
    if parameters is None:
        return None
    named = [child for child in parameters.named_children if child.type != "comment"]
    if len(named) != 1 or named[0].type != "identifier":
        return None
    return _node_text(source, named[0])


def _first_argument_refers_to(source: bytes, call: Any, name: bytes) -> bool:
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return False
    named = [child for child in arguments.named_children if child.type != "comment"]
    if not named:
        return False
    first = named[0]
    if first.type == "binary_expression":
        first = first.child_by_field_name("left")
    return first is not None and first.type == "identifier" and _node_text(source, first) == name


def _enum_patches(source: bytes, call: Any) -> list[Patch]:
    """Turn ``var E; (function (E) {...})(E || (E = {}))`` into an assignment.

    The declaration's ``;`` becomes ``=`` and the function returns its
    parameter, so the whole initializer is a single pure expression.
    """
    if call.type != "call_expression":
        return []
    callee = _strip_parens(call.child_by_field_name("function"))
    if callee is None or callee.type not in _FUNCTION_EXPRESSION_KINDS:
        return []
    parameter = _single_parameter(source, callee)
    if parameter is None:
        return []
    window_start = max(0, call.start_byte - ENUM_LOOKBEHIND_BYTES)
    match = _ENUM_DECLARATION_RE.search(source, window_start, call.start_byte)
    if match is None:
        return []
    declared = match.group(1)
    if declared != parameter and not _first_argument_refers_to(source, call, declared):
        return []
    body = callee.child_by_field_name("body")
    if body is None or body.type != "statement_block":
        return []
    param_text = parameter.decode("utf-8")
    return [
        Patch(start=match.start(2), end=match.end(2), text=" ="),
        Patch(start=body.end_byte - 1, text=f";return {param_text};"),
    ]


def _collect(source: bytes, root: Any) -> list[Patch]:
    patches: list[Patch] = []
    stack = [root]
    while stack:
        node = stack.pop()
        kind = node.type
        if kind in _OPAQUE_KINDS:
            continue
        if kind in _CLASS_KINDS:
            stack.extend(child for child in node.named_children if child.type != "class_body")
            continue
        if kind in _CALL_KINDS:
            # Arguments and callee are walked too, so nested calls get markers.
            stack.extend(node.named_children)
            callee = node.child_by_field_name("function")
            if callee is not None and callee.type == "import":
                continue
            patches.extend(_enum_patches(source, node))
            patches.append(Patch(start=node.start_byte, text=PURE_MARKER))
            continue
        stack.extend(node.named_children)
    return patches


def compute_pure_patches(code: str) -> list[Patch]:
    """Return marker and enum-rewrite patches as byte-offset edits."""
    source = code.encode("utf-8")
    return _collect(source, _parse(source))


def annotate_pure_calls(code: str) -> str:
    """Return ``code`` with pure markers before every top-level call."""
    annotated, _ = annotate_with_map(code, None)
    return annotated


def annotate_with_map(code: str, map_text: str | None) -> tuple[str, str | None]:
    """Annotate ``code`` and keep an accompanying source map aligned."""
    source = code.encode("utf-8")
    patches = _collect(source, _parse(source))
    if not patches:
        return code, map_text
    annotated = apply_patches(source, patches).decode("utf-8")
    if map_text is None:
        return annotated, None
    return annotated, shift_source_map(map_text, code, patches)
