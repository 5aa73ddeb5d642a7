"""Tree-shaking annotation of generated bundles."""

from .patches import Patch, apply_patches, sort_patches
from .pure import (
    PURE_MARKER,
    AnnotationError,
    annotate_pure_calls,
    annotate_with_map,
    compute_pure_patches,
)
from .sourcemap import SourceMap, decode_vlq, encode_vlq, shift_source_map

__all__ = [
    "AnnotationError",
    "PURE_MARKER",
    "Patch",
    "SourceMap",
    "annotate_pure_calls",
    "annotate_with_map",
    "apply_patches",
    "compute_pure_patches",
    "decode_vlq",
    "encode_vlq",
    "shift_source_map",
    "sort_patches",
]
