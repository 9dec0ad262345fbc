"""Go to definition for ``Def/Name`` and ``Def-expand/Name`` references."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from hed_lsp.document.regions import extract_regions, region_at, tag_at_offset
from hed_lsp.utils.hed_strings import find_definition_location, parse_def_reference

if TYPE_CHECKING:
    from hed_lsp.document.types import Position, Range, TextDocument


@dataclass(frozen=True)
class Location:
    uri: str
    range: Range

    def to_dict(self) -> dict:
        return {"uri": self.uri, "range": self.range.to_dict()}


def provide_definition(document: TextDocument, position: Position) -> Location | None:
    """Location of the ``(Definition/Name, ...)`` group a reference points to.

    Returns:
        The group's location in the same document, or None when the cursor is
        not on a definition reference or the name is not defined
    """
    regions = extract_regions(document)
    region = region_at(regions, position)
    if region is None:
        return None

    token = tag_at_offset(region.content, region.to_content_offset(document.offset_at(position)))
    if token is None:
        return None

    reference = parse_def_reference(token.text)
    if reference is None:
        return None

    location = find_definition_location(regions, reference.name)
    if location is None:
        return None

    return Location(document.uri, location.region.content_range(document, location.start, location.end))
