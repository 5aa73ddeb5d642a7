from __future__ import annotations

import json

from buildtool.annotate import (
    PURE_MARKER,
    Patch,
    SourceMap,
    annotate_with_map,
    decode_vlq,
    encode_vlq,
    shift_source_map,
)


def _columns(mappings_line: str) -> list[int]:
    columns: list[int] = []
    current = 0
    for segment in mappings_line.split(","):
        current += decode_vlq(segment)[0]
        columns.append(current)
    return columns


def test_vlq_known_values() -> None:
    assert encode_vlq([0, 0, 0, 0]) == "AAAA"
    assert encode_vlq([16]) == "gB"
    assert encode_vlq([-1]) == "D"
    assert decode_vlq("gB") == [16]
    assert decode_vlq("SAAS") == [9, 0, 0, 9]


def test_segments_after_insertion_point_move_right() -> None:
    code = "a(); b();\n"
    original = SourceMap(
        mappings=",".join([encode_vlq([0, 0, 0, 0]), encode_vlq([5, 0, 0, 5])]),
        sources=["src/index.ts"],
    )
    patches = [Patch(start=5, text=PURE_MARKER)]

    shifted = json.loads(shift_source_map(original.to_string(), code, patches))

    assert _columns(shifted["mappings"]) == [0, 5 + len(PURE_MARKER)]
    assert shifted["sources"] == ["src/index.ts"]


def test_insertion_at_segment_column_moves_that_segment() -> None:
    code = "x;\nf();\n"
    original = SourceMap(mappings="AAAA;AACA", sources=["a.ts"])

    shifted = json.loads(shift_source_map(original.to_string(), code, [Patch(start=3, text="/**/")]))

    lines = shifted["mappings"].split(";")
    assert lines[0] == "AAAA"
    assert _columns(lines[1]) == [4]


def test_annotate_with_map_keeps_map_aligned() -> None:
    code = "const x = 1;\nmake();\n"
    map_text = SourceMap(mappings="AAAA;AACA", sources=["a.ts"]).to_string()

    annotated, shifted = annotate_with_map(code, map_text)

    assert annotated == f"const x = 1;\n{PURE_MARKER}make();\n"
    assert shifted is not None
    assert _columns(json.loads(shifted)["mappings"].split(";")[1]) == [len(PURE_MARKER)]


def test_annotate_without_patches_returns_inputs_unchanged() -> None:
    code = "const x = 1;\n"
    map_text = SourceMap(mappings="AAAA", sources=["a.ts"]).to_string()

    assert annotate_with_map(code, map_text) == (code, map_text)
