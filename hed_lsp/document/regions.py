"""Region lookup over JSON and TSV documents."""

from __future__ import annotations

from dataclasses import dataclass

from hed_lsp.document.json_regions import parse_json_regions
from hed_lsp.document.tsv_regions import has_hed_column, is_tsv_document, parse_tsv_regions
from hed_lsp.document.types import HedRegion, Position, TextDocument

TAG_SEPARATORS = frozenset(",()")

__all__ = [
    "TagToken",
    "content_offset_at",
    "extract_regions",
    "has_hed_column",
    "is_tsv_document",
    "region_at",
    "region_at_position",
    "tag_at_offset",
]


@dataclass(frozen=True)
class TagToken:
    """A tag token inside a HED string with its in-string bounds."""

    text: str
    start: int
    end: int


def extract_regions(document: TextDocument) -> list[HedRegion]:
    """Extract HED regions, choosing the parser from the document suffix."""
    if is_tsv_document(document):
        return parse_tsv_regions(document)
    return parse_json_regions(document)


def region_at(regions: list[HedRegion], position: Position) -> HedRegion | None:
    """First region whose range contains ``position`` (inclusive boundaries)."""
    for region in regions:
        if region.range.contains(position):
            return region
    return None


def region_at_position(document: TextDocument, position: Position) -> HedRegion | None:
    return region_at(extract_regions(document), position)


def content_offset_at(region: HedRegion, document: TextDocument, position: Position) -> int:
    """In-string index of a document position inside ``region``."""
    return region.to_content_offset(document.offset_at(position))


def tag_at_offset(content: str, offset: int) -> TagToken | None:
    """Tag token around ``offset``.

    Expands left and right until a separator (``,``, ``(``, ``)``) or the
    string boundary, then trims surrounding spaces.

    Returns:
        The token, or None when the span is empty
    """
    offset = max(0, min(offset, len(content)))
    start = offset
    while start > 0 and content[start - 1] not in TAG_SEPARATORS:
        start -= 1
    end = offset
    while end < len(content) and content[end] not in TAG_SEPARATORS:
        end += 1

    while start < end and content[start].isspace():
        start += 1
    while end > start and content[end - 1].isspace():
        end -= 1

    if start == end:
        return None
    return TagToken(content[start:end], start, end)
