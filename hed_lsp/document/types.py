"""Document-side types: positions, ranges, text snapshots and HED regions."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field


@dataclass(frozen=True, order=True)
class Position:
    """Zero-based line / character position in a document."""

    line: int
    character: int

    def to_dict(self) -> dict:
        return {"line": self.line, "character": self.character}


@dataclass(frozen=True)
class Range:
    """Document range; ``end`` is exclusive for text but containment is inclusive."""

    start: Position
    end: Position

    def contains(self, position: Position) -> bool:
        """Whether ``position`` lies within the range, boundaries included."""
        return self.start <= position <= self.end

    def to_dict(self) -> dict:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}


class TextDocument:
    """Immutable text snapshot with position <-> offset conversion.

    Line breaks are ``\\n``, ``\\r\\n`` or ``\\r``.
    """

    def __init__(self, uri: str, text: str, version: int = 0) -> None:
        self.uri = uri
        self.text = text
        self.version = version
        self._line_starts = self._compute_line_starts(text)

    @staticmethod
    def _compute_line_starts(text: str) -> list[int]:
        starts = [0]
        i = 0
        length = len(text)
        while i < length:
            ch = text[i]
            if ch == "\r":
                if i + 1 < length and text[i + 1] == "\n":
                    i += 1
                starts.append(i + 1)
            elif ch == "\n":
                starts.append(i + 1)
            i += 1
        return starts

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def position_at(self, offset: int) -> Position:
        """Convert a character offset to a position (clamped to the text)."""
        offset = max(0, min(offset, len(self.text)))
        line = bisect_right(self._line_starts, offset) - 1
        return Position(line, offset - self._line_starts[line])

    def offset_at(self, position: Position) -> int:
        """Convert a position to a character offset (clamped to the line)."""
        if position.line >= len(self._line_starts):
            return len(self.text)
        if position.line < 0:
            return 0
        line_start = self._line_starts[position.line]
        if position.line + 1 < len(self._line_starts):
            line_end = self._line_starts[position.line + 1]
        else:
            line_end = len(self.text)
        return max(line_start, min(line_start + position.character, line_end))

    def range_of(self, start: int, end: int) -> Range:
        return Range(self.position_at(start), self.position_at(end))

    def __repr__(self) -> str:
        return f"TextDocument({self.uri!r}, version={self.version})"


@dataclass(frozen=True)
class HedRegion:
    """A located, position-mapped HED string inside a host document.

    Attributes:
        content: Decoded string content
        range: Document range including the string delimiters
        path: Structural path ("event.HED", "trial_type.HED.go", "row3.HED")
        content_offset: Document offset of the first content character
        raw_offsets: Document offset of every content character plus one
            trailing entry for the end; None when content maps 1:1 onto the
            raw text
    """

    content: str
    range: Range
    path: str
    content_offset: int
    raw_offsets: tuple[int, ...] | None = field(default=None, compare=False, repr=False)

    def to_document_offset(self, index: int) -> int:
        """Translate an in-string index into a document offset."""
        index = max(0, min(index, len(self.content)))
        if self.raw_offsets is None:
            return self.content_offset + index
        return self.raw_offsets[index]

    def to_content_offset(self, offset: int) -> int:
        """Translate a document offset into an in-string index (clamped)."""
        if self.raw_offsets is None:
            return max(0, min(offset - self.content_offset, len(self.content)))
        index = bisect_right(self.raw_offsets, offset) - 1
        return max(0, min(index, len(self.content)))

    def content_range(self, document: TextDocument, start: int, end: int) -> Range:
        """Document range for in-string bounds ``[start, end)``."""
        return Range(
            document.position_at(self.to_document_offset(start)),
            document.position_at(self.to_document_offset(end)),
        )


@dataclass(frozen=True)
class DefinitionInfo:
    """A definition name declared in the document and whether it takes a value."""

    name: str
    has_placeholder: bool


@dataclass(frozen=True)
class DefinitionLocation:
    """Where a ``(Definition/Name, ...)`` group lives.

    Attributes:
        name: Definition name as written
        has_placeholder: Whether it was declared as ``Definition/Name/#``
        content: Full group text, parentheses included
        region: Region holding the group
        start: In-string start of the group
        end: In-string end of the group (exclusive)
    """

    name: str
    has_placeholder: bool
    content: str
    region: HedRegion
    start: int
    end: int
