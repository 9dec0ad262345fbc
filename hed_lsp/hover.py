"""Hover information for HED tags, placeholders and definition references."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from hed_lsp.document.regions import extract_regions, region_at, tag_at_offset
from hed_lsp.errors import DefinitionResolutionMiss, SchemaLoadError
from hed_lsp.schema.manager import find_tag
from hed_lsp.schema.types import split_prefix
from hed_lsp.utils.hed_strings import find_definition_location, is_inside_placeholder, parse_def_reference

if TYPE_CHECKING:
    from hed_lsp.document.types import HedRegion, Position, Range, TextDocument
    from hed_lsp.schema.manager import SchemaManager
    from hed_lsp.schema.types import TagEntry, Vocabulary
    from hed_lsp.utils.hed_strings import DefReference

logger = logging.getLogger(__name__)

CHILD_PREVIEW = 5


@dataclass
class Hover:
    """Markdown hover contents and the range they describe."""

    contents: str
    range: Range | None = None

    def to_dict(self) -> dict:
        item = {"contents": {"kind": "markdown", "value": self.contents}}
        if self.range is not None:
            item["range"] = self.range.to_dict()
        return item


def placeholder_hover(content: str, offset: int) -> Hover:
    start = offset
    while start > 0 and content[start - 1] != "{":
        start -= 1
    end = offset
    while end < len(content) and content[end] != "}":
        end += 1
    name = content[start:end].strip()
    return Hover(
        "\n".join(
            [
                f"**Column placeholder:** `{{{name}}}`",
                "",
                "Replaced with the values of this column when HED strings are assembled.",
                "",
                "Placeholders let BIDS sidecars reference values from TSV event files.",
            ]
        )
    )


def unknown_tag_hover(tag_path: str) -> Hover:
    return Hover(
        "\n".join(
            [
                f"**Unknown tag:** `{tag_path}`",
                "",
                "This tag was not found in the loaded HED schema.",
                "",
                "Possible reasons:",
                "- Typo in the tag name",
                "- Tag from a library schema that is not loaded",
                "- Custom extension (if the parent allows extensions)",
            ]
        )
    )


def tag_hover(tag: TagEntry, remainder: str | None = None) -> Hover:
    """Hover for a known tag; ``remainder`` is any text written after it."""
    lines = [f"## {tag.prefixed_name}", ""]
    if tag.description:
        lines += [tag.description, ""]
    lines += [f"**Full path:** `{tag.prefix}{tag.long_form}`", ""]

    if remainder:
        kind = "Value" if tag.attributes.takes_value else "Extension"
        lines += [f"**{kind}:** `{remainder}`", ""]

    attributes = tag.attributes
    attribute_lines = []
    if attributes.takes_value:
        attribute_lines.append("- Takes value: **Yes**")
        if attributes.unit_class:
            attribute_lines.append(f"- Unit classes: {', '.join(attributes.unit_class)}")
        if attributes.default_units:
            attribute_lines.append(f"- Default units: {attributes.default_units}")
    if attributes.extension_allowed:
        attribute_lines.append("- Extensions allowed: **Yes**")
    if attributes.require_child:
        attribute_lines.append("- Requires child: **Yes**")
    if attributes.unique:
        attribute_lines.append("- Unique: **Yes** (can only appear once)")
    if attribute_lines:
        lines += ["### Attributes", *attribute_lines, ""]

    if tag.children:
        preview = ", ".join(f"`{c}`" for c in tag.children[:CHILD_PREVIEW])
        more = len(tag.children) - CHILD_PREVIEW
        lines += ["### Children", preview + (f" ... and {more} more" if more > 0 else ""), ""]

    if attributes.suggested_tag:
        lines += ["### Suggested tags", ", ".join(f"`{t}`" for t in attributes.suggested_tag), ""]
    if attributes.related_tag:
        lines += ["### Related tags", ", ".join(f"`{t}`" for t in attributes.related_tag), ""]

    return Hover("\n".join(lines).rstrip())


def definition_hover(reference: DefReference, regions: list[HedRegion]) -> Hover:
    """Hover for ``Def/Name``; an unknown name gives an informational hover."""
    location = find_definition_location(regions, reference.name)
    if location is None:
        miss = DefinitionResolutionMiss(reference.name)
        return Hover(f"**{reference.marker}/{miss.name}**\n\n{miss}.")

    lines = [f"**{reference.marker}/{location.name}**", "", "```", location.content, "```"]
    if location.has_placeholder:
        value = reference.value if reference.has_value else "(missing)"
        lines += ["", f"Value for `#`: `{value}`"]
    return Hover("\n".join(lines))


def resolve_tag_path(vocabulary: Vocabulary, tag_path: str) -> tuple[TagEntry | None, str | None]:
    """Resolve the deepest known segment of a tag path.

    "Temporal-rate/5 Hz" -> (Temporal-rate, "5 Hz"); "Item/Object" -> (Object, None)

    Returns:
        (tag, text after it) or (None, None)
    """
    prefix, bare = split_prefix(tag_path)
    segments = bare.split("/")
    for index in range(len(segments) - 1, -1, -1):
        segment = segments[index].strip()
        if not segment:
            continue
        tag = find_tag(vocabulary, f"{prefix}{segment}" if prefix else segment)
        if tag is not None:
            remainder = "/".join(segments[index + 1 :]).strip() or None
            return tag, remainder
    return None, None


async def provide_hover(
    document: TextDocument,
    position: Position,
    schema_manager: SchemaManager,
    version: str | None = None,
) -> Hover | None:
    """Hover at a position inside a HED string (None outside any region)."""
    regions = extract_regions(document)
    region = region_at(regions, position)
    if region is None:
        return None

    offset = region.to_content_offset(document.offset_at(position))
    if is_inside_placeholder(region.content, offset):
        return placeholder_hover(region.content, offset)

    token = tag_at_offset(region.content, offset)
    if token is None:
        return None
    token_range = region.content_range(document, token.start, token.end)

    reference = parse_def_reference(token.text, token.start)
    if reference is not None:
        hover = definition_hover(reference, regions)
        hover.range = token_range
        return hover

    try:
        vocabulary = await schema_manager.load(version)
    except SchemaLoadError as e:
        logger.warning(f"No hover, schema unavailable: {e}")
        return None

    tag, remainder = resolve_tag_path(vocabulary, token.text)
    hover = unknown_tag_hover(token.text) if tag is None else tag_hover(tag, remainder)
    hover.range = token_range
    return hover
