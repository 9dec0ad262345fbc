"""Document handling: text snapshots and HED region extraction (JSON and TSV)."""

from hed_lsp.document.regions import (
    TagToken,
    content_offset_at,
    extract_regions,
    has_hed_column,
    is_tsv_document,
    region_at,
    region_at_position,
    tag_at_offset,
)
from hed_lsp.document.types import HedRegion, Position, Range, TextDocument

__all__ = [
    "HedRegion",
    "Position",
    "Range",
    "TagToken",
    "TextDocument",
    "content_offset_at",
    "extract_regions",
    "has_hed_column",
    "is_tsv_document",
    "region_at",
    "region_at_position",
    "tag_at_offset",
]
