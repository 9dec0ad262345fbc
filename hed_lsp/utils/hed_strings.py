"""Low-level scanning of HED strings.

Shared by completion, validation, hover and go-to-definition:

- placeholder detection and removal (``{column}`` markers in sidecars)
- definition extraction with balanced-parenthesis group scanning
- ``Def/Name`` reference parsing
- boundary-safe tag search
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from hed_lsp.document.types import DefinitionInfo, DefinitionLocation, HedRegion

TAG_SEPARATORS = ",()"
PLACEHOLDER_PATTERN = re.compile(r"\{[^{}]*\}")
EMPTY_GROUP_PATTERN = re.compile(r"\(\s*\)")

# Definition/Name or Definition/Name/# inside any text
DEFINITION_PATTERN = re.compile(r"\bDefinition/([A-Za-z0-9_-]+)(/\s*#)?", re.IGNORECASE)

# Opening of a definition group: (Definition/Name[/#] followed by , or )
DEFINITION_GROUP_PATTERN = re.compile(
    r"\(\s*Definition/([A-Za-z0-9_-]+)(/\s*#)?\s*(?=[,)])", re.IGNORECASE
)

# A whole token: Def/Name, Def-expand/Name, Def/Name/value. Marker is case-insensitive.
DEF_REFERENCE_PATTERN = re.compile(r"^(?i:(Def-expand|Def))/([A-Za-z0-9_-]+)(?:/(.*))?$")


def is_inside_placeholder(content: str, offset: int) -> bool:
    """Whether ``offset`` sits inside a ``{...}`` placeholder."""
    depth = 0
    for ch in content[: max(0, offset)]:
        if ch == "{":
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
    return depth > 0


@dataclass(frozen=True)
class PlaceholderStrip:
    """A HED string with placeholders removed.

    Attributes:
        text: Cleaned string
        index_map: Original index of every character of ``text``
        original_length: Length of the original string
    """

    text: str
    index_map: tuple[int, ...]
    original_length: int

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()

    def to_original(self, index: int) -> int:
        """Original index of the cleaned character at ``index``."""
        if not self.index_map:
            return 0
        index = max(0, min(index, len(self.index_map) - 1))
        return self.index_map[index]

    def original_bounds(self, start: int, end: int) -> tuple[int, int]:
        """Map cleaned bounds ``[start, end)`` back to the original string."""
        if not self.index_map:
            return 0, 0
        start = max(0, min(start, len(self.index_map)))
        end = max(start, min(end, len(self.index_map)))
        if start == len(self.index_map):
            original_end = self.index_map[-1] + 1
            return original_end, original_end
        original_start = self.index_map[start]
        original_end = self.index_map[end - 1] + 1 if end > start else original_start
        return original_start, original_end


def _unit_bounds(chars: list[tuple[int, str]], start: int, end: int) -> tuple[int, int]:
    """Widen ``[start, end)`` to include one adjacent comma (following preferred)."""
    n = len(chars)
    right = end
    while right < n and chars[right][1].isspace():
        right += 1
    if right < n and chars[right][1] == ",":
        right += 1
        while right < n and chars[right][1].isspace():
            right += 1
        return start, right

    left = start
    while left > 0 and chars[left - 1][1].isspace():
        left -= 1
    if left > 0 and chars[left - 1][1] == ",":
        return left - 1, end
    return start, end


def _token_around(chars: list[tuple[int, str]], start: int, end: int) -> tuple[int, int]:
    while start > 0 and chars[start - 1][1] not in TAG_SEPARATORS:
        start -= 1
    while end < len(chars) and chars[end][1] not in TAG_SEPARATORS:
        end += 1
    while start < end and chars[start][1].isspace():
        start += 1
    while end > start and chars[end - 1][1].isspace():
        end -= 1
    return start, end


def _joined(chars: list[tuple[int, str]]) -> str:
    return "".join(ch for _i, ch in chars)


def remove_placeholders(content: str) -> PlaceholderStrip:
    """Remove ``{column}`` placeholders for validation.

    The whole tag token holding a placeholder is removed together with one
    adjacent comma, preferring the following one. Groups left empty are
    removed the same way, so no dangling comma, empty ``()`` or doubled comma
    remains.

    Examples:
        "Tag-a, {col}, Tag-b" -> "Tag-a, Tag-b"
        "{col}" -> ""
    """
    chars = list(enumerate(content))

    while True:
        match = PLACEHOLDER_PATTERN.search(_joined(chars))
        if match is None:
            break
        start, end = _token_around(chars, match.start(), match.end())
        start, end = _unit_bounds(chars, start, end)
        del chars[start:end]

    while True:
        match = EMPTY_GROUP_PATTERN.search(_joined(chars))
        if match is None:
            break
        start, end = _unit_bounds(chars, match.start(), match.end())
        del chars[start:end]

    while chars and chars[0][1].isspace():
        chars.pop(0)
    while chars and chars[-1][1].isspace():
        chars.pop()

    return PlaceholderStrip(
        text=_joined(chars),
        index_map=tuple(i for i, _ch in chars),
        original_length=len(content),
    )


def _group_end(content: str, open_paren: int) -> int:
    """Index just past the parenthesis matching ``open_paren`` (or end of string)."""
    depth = 0
    i = open_paren
    while i < len(content):
        if content[i] == "(":
            depth += 1
        elif content[i] == ")":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return len(content)


def find_definition_locations(regions: Iterable[HedRegion]) -> list[DefinitionLocation]:
    """Every definition group in the regions, deduplicated by name.

    When a name is declared more than once the first placeholder-bearing
    declaration wins, otherwise the first declaration.
    """
    found: dict[str, DefinitionLocation] = {}
    for region in regions:
        for match in DEFINITION_GROUP_PATTERN.finditer(region.content):
            name = match.group(1)
            has_placeholder = match.group(2) is not None
            key = name.lower()
            existing = found.get(key)
            if existing is not None and (existing.has_placeholder or not has_placeholder):
                continue
            end = _group_end(region.content, match.start())
            found[key] = DefinitionLocation(
                name=name,
                has_placeholder=has_placeholder,
                content=region.content[match.start() : end],
                region=region,
                start=match.start(),
                end=end,
            )
    return list(found.values())


def find_definition_location(regions: Iterable[HedRegion], name: str) -> DefinitionLocation | None:
    """Location of the definition named ``name`` (case-insensitive)."""
    target = name.lower()
    for location in find_definition_locations(regions):
        if location.name.lower() == target:
            return location
    return None


def extract_definitions(regions: Iterable[HedRegion]) -> list[DefinitionInfo]:
    """Definition names declared in the regions, sorted by name.

    Definitions outside a group (``Definition/Name`` written bare) are still
    reported, since completion should offer them. Names compare
    case-insensitively, with the same winner as ``find_definition_locations``.
    """
    found: dict[str, DefinitionInfo] = {}
    for region in regions:
        for match in DEFINITION_PATTERN.finditer(region.content):
            name = match.group(1)
            has_placeholder = match.group(2) is not None
            key = name.lower()
            existing = found.get(key)
            if existing is not None and (existing.has_placeholder or not has_placeholder):
                continue
            found[key] = DefinitionInfo(name=name, has_placeholder=has_placeholder)
    return sorted(found.values(), key=lambda d: d.name)


@dataclass(frozen=True)
class DefReference:
    """A ``Def/Name[/value]`` or ``Def-expand/Name[/value]`` token.

    Attributes:
        marker: "Def" or "Def-expand" as written
        name: Referenced definition name
        value: Text after the name ("" for a trailing slash), None if absent
        start: In-string start of the token
        end: In-string end of the token
    """

    marker: str
    name: str
    value: str | None
    start: int = 0
    end: int = 0

    @property
    def has_value(self) -> bool:
        return bool(self.value and self.value.strip())

    @property
    def is_expand(self) -> bool:
        return self.marker.lower() == "def-expand"


def parse_def_reference(token: str, start: int = 0) -> DefReference | None:
    """Parse a trimmed tag token as a definition reference."""
    match = DEF_REFERENCE_PATTERN.match(token.strip())
    if match is None:
        return None
    return DefReference(
        marker=match.group(1),
        name=match.group(2),
        value=match.group(3),
        start=start,
        end=start + len(token.strip()),
    )


def iter_tag_tokens(content: str) -> Iterator[tuple[str, int, int]]:
    """Yield (token, start, end) for every non-empty tag token."""
    start = 0
    for i in range(len(content) + 1):
        if i == len(content) or content[i] in TAG_SEPARATORS:
            s, e = start, i
            while s < e and content[s].isspace():
                s += 1
            while e > s and content[e - 1].isspace():
                e -= 1
            if s < e:
                yield content[s:e], s, e
            start = i + 1


def iter_def_references(content: str) -> Iterator[DefReference]:
    """Every definition reference in a HED string, with its bounds."""
    for token, start, _end in iter_tag_tokens(content):
        reference = parse_def_reference(token, start)
        if reference is not None:
            yield reference


def _is_boundary(ch: str) -> bool:
    return ch in TAG_SEPARATORS or ch.isspace()


def find_tag_bounds(content: str, tag: str, start: int = 0) -> tuple[int, int] | None:
    """Find ``tag`` in ``content`` as a whole tag, case-insensitively.

    Both sides of a match must be the string boundary, a separator or
    whitespace, so "Animal" does not match inside "Animal-agent".

    Returns:
        (start, end) of the first whole match, or None
    """
    needle = tag.strip().lower()
    if not needle:
        return None
    haystack = content.lower()
    index = haystack.find(needle, max(0, start))
    while index != -1:
        end = index + len(needle)
        before_ok = index == 0 or _is_boundary(content[index - 1])
        after_ok = end == len(content) or _is_boundary(content[end])
        if before_ok and after_ok:
            return index, end
        index = haystack.find(needle, index + 1)
    return None
