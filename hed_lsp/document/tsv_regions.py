"""HED region extraction from tab-separated event files (BIDS ``*_events.tsv``)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from hed_lsp.document.types import HedRegion, TextDocument

logger = logging.getLogger(__name__)

HED_COLUMN = "hed"
MISSING_VALUE = "n/a"
_LINE_PATTERN = re.compile(r"([^\r\n]*)(\r\n|\n|\r|$)")


@dataclass
class TsvCell:
    """One cell of a TSV line.

    Attributes:
        content: Decoded cell value (trimmed, unquoted, ``""`` unescaped)
        start: Line offset where the raw cell starts
        end: Line offset where the raw cell ends (exclusive)
        content_start: Line offset of the first decoded character
        raw_offsets: Line offset of each decoded character plus the end,
            present only when doubled quotes were unescaped
    """

    content: str
    start: int
    end: int
    content_start: int
    raw_offsets: tuple[int, ...] | None = None


def _iter_lines(text: str):
    """Yield (line_number, line_start_offset, line_text) without terminators."""
    for number, match in enumerate(_LINE_PATTERN.finditer(text)):
        if match.start() == len(text) and number > 0:
            break
        yield number, match.start(), match.group(1)


def _decode_cell(line: str, start: int, end: int) -> TsvCell:
    raw = line[start:end]
    stripped = raw.strip()
    lead = start + (len(raw) - len(raw.lstrip()))

    if len(stripped) >= 2 and stripped[0] == '"' and stripped[-1] == '"':
        inner_start = lead + 1
        inner_end = lead + len(stripped) - 1
        chars: list[str] = []
        offsets: list[int] = []
        i = inner_start
        while i < inner_end:
            offsets.append(i)
            chars.append(line[i])
            i += 2 if line[i] == '"' and i + 1 < inner_end and line[i + 1] == '"' else 1
        offsets.append(inner_end)
        content = "".join(chars)
        raw_offsets = tuple(offsets) if len(content) != inner_end - inner_start else None
        return TsvCell(content, start, end, inner_start, raw_offsets)

    return TsvCell(stripped, start, end, lead)


def parse_tsv_line(line: str) -> list[TsvCell]:
    """Split a TSV line on tabs, honouring double-quoted fields.

    A quoted field may contain tabs and commas; ``""`` inside it is a
    literal quote.
    """
    cells: list[TsvCell] = []
    cell_start = 0
    in_quotes = False
    i = 0
    while i <= len(line):
        ch = line[i] if i < len(line) else None
        if ch == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                i += 2
                continue
            in_quotes = not in_quotes
        elif (ch == "\t" or ch is None) and not in_quotes:
            cells.append(_decode_cell(line, cell_start, i))
            cell_start = i + 1
        elif ch is None:
            # Unterminated quote: the rest of the line is one cell
            cells.append(_decode_cell(line, cell_start, i))
        i += 1
    return cells


def find_hed_column(header: str) -> int:
    """Index of the HED column in a header line (case-insensitive), -1 if absent."""
    for index, cell in enumerate(parse_tsv_line(header)):
        if cell.content.strip().lower() == HED_COLUMN:
            return index
    return -1


def has_hed_column(document: TextDocument) -> bool:
    header = next(_iter_lines(document.text), (0, 0, ""))[2]
    return find_hed_column(header) != -1


def is_tsv_document(document: TextDocument) -> bool:
    return document.uri.lower().endswith(".tsv")


def parse_tsv_regions(document: TextDocument) -> list[HedRegion]:
    """Extract one region per non-empty HED cell of a TSV document.

    Cells equal to ``n/a`` are skipped. The region range covers the raw cell
    including any quotes; the path is ``row{line}.HED`` with 1-based lines.

    Args:
        document: Text snapshot of the TSV document

    Returns:
        Regions in document order
    """
    regions: list[HedRegion] = []
    lines = _iter_lines(document.text)
    header = next(lines, None)
    if header is None:
        return regions
    column = find_hed_column(header[2])
    if column == -1:
        return regions

    for number, line_start, line in lines:
        if not line.strip():
            continue
        cells = parse_tsv_line(line)
        if column >= len(cells):
            continue
        cell = cells[column]
        if not cell.content.strip() or cell.content.strip().lower() == MISSING_VALUE:
            continue
        raw_offsets = None
        if cell.raw_offsets is not None:
            raw_offsets = tuple(line_start + offset for offset in cell.raw_offsets)
        regions.append(
            HedRegion(
                content=cell.content,
                range=document.range_of(line_start + cell.start, line_start + cell.end),
                path=f"row{number + 1}.HED",
                content_offset=line_start + cell.content_start,
                raw_offsets=raw_offsets,
            )
        )

    logger.debug(f"Found {len(regions)} HED cells in {document.uri}")
    return regions
