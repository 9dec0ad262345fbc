"""HED region extraction from JSON sidecars.

The raw text is walked once. Strings are decoded with the standard library
JSON scanner while their raw offsets are recorded, so every region maps back
to exact document positions even when the value contains escapes.
"""

from __future__ import annotations

import json
import logging
from json.decoder import scanstring

from hed_lsp.document.types import HedRegion, TextDocument

logger = logging.getLogger(__name__)

HED_KEY = "HED"
_WHITESPACE = " \t\n\r"
_scalar_decoder = json.JSONDecoder()


class _JsonRegionWalker:
    """Recursive-descent walk over raw JSON text collecting HED string values."""

    def __init__(self, document: TextDocument) -> None:
        self.document = document
        self.text = document.text
        self.regions: list[HedRegion] = []

    def _error(self, message: str, index: int) -> json.JSONDecodeError:
        return json.JSONDecodeError(message, self.text, index)

    def _skip(self, index: int) -> int:
        text = self.text
        while index < len(text) and text[index] in _WHITESPACE:
            index += 1
        return index

    def run(self) -> list[HedRegion]:
        end = self._value(self._skip(0), [], inside_hed=False)
        if self._skip(end) != len(self.text):
            raise self._error("Extra data", end)
        return self.regions

    def _value(self, index: int, path: list[str], inside_hed: bool) -> int:
        """Parse the value starting at ``index``; return the index after it."""
        if index >= len(self.text):
            raise self._error("Expecting value", index)
        ch = self.text[index]
        if ch == "{":
            return self._object(index + 1, path, inside_hed)
        if ch == "[":
            return self._array(index + 1, path, inside_hed)
        if ch == '"':
            value, end = scanstring(self.text, index + 1)
            if inside_hed:
                self._add_region(value, index, end, path)
            return end
        _value, end = _scalar_decoder.raw_decode(self.text, index)
        return end

    def _member(self, index: int, path: list[str], key: str, inside_hed: bool) -> int:
        child_path = [*path, key]
        if key == HED_KEY:
            return self._value(index, child_path, inside_hed=True)
        return self._value(index, child_path, inside_hed)

    def _object(self, index: int, path: list[str], inside_hed: bool) -> int:
        index = self._skip(index)
        if index < len(self.text) and self.text[index] == "}":
            return index + 1
        while True:
            if index >= len(self.text) or self.text[index] != '"':
                raise self._error("Expecting property name enclosed in double quotes", index)
            key, index = scanstring(self.text, index + 1)
            index = self._skip(index)
            if index >= len(self.text) or self.text[index] != ":":
                raise self._error("Expecting ':' delimiter", index)
            index = self._member(self._skip(index + 1), path, key, inside_hed)
            index = self._skip(index)
            if index < len(self.text) and self.text[index] == ",":
                index = self._skip(index + 1)
                continue
            if index < len(self.text) and self.text[index] == "}":
                return index + 1
            raise self._error("Expecting ',' delimiter", index)

    def _array(self, index: int, path: list[str], inside_hed: bool) -> int:
        index = self._skip(index)
        if index < len(self.text) and self.text[index] == "]":
            return index + 1
        position = 0
        while True:
            index = self._value(index, [*path, str(position)], inside_hed)
            position += 1
            index = self._skip(index)
            if index < len(self.text) and self.text[index] == ",":
                index = self._skip(index + 1)
                continue
            if index < len(self.text) and self.text[index] == "]":
                return index + 1
            raise self._error("Expecting ',' delimiter", index)

    def _add_region(self, value: str, open_quote: int, end: int, path: list[str]) -> None:
        close_quote = end - 1
        content_start = open_quote + 1
        raw = self.text[content_start:close_quote]
        raw_offsets = _escaped_offsets(self.text, content_start, close_quote) if "\\" in raw else None
        self.regions.append(
            HedRegion(
                content=value,
                range=self.document.range_of(open_quote, end),
                path=".".join(path),
                content_offset=content_start,
                raw_offsets=raw_offsets,
            )
        )


def _escaped_offsets(text: str, start: int, close: int) -> tuple[int, ...]:
    """Raw offset of every decoded character of a JSON string, plus the end."""
    offsets: list[int] = []
    i = start
    while i < close:
        offsets.append(i)
        if text[i] != "\\":
            i += 1
            continue
        if text[i + 1] != "u":
            i += 2
            continue
        code = int(text[i + 2 : i + 6], 16)
        if 0xD800 <= code <= 0xDBFF and text[i + 6 : i + 8] == "\\u":
            low = int(text[i + 8 : i + 12], 16)
            if 0xDC00 <= low <= 0xDFFF:
                i += 12
                continue
        i += 6
    offsets.append(close)
    return tuple(offsets)


def parse_json_regions(document: TextDocument) -> list[HedRegion]:
    """Extract every HED string region from a JSON document.

    Direct ``"HED": "..."`` values and every string leaf of a nested object
    (or array) under a ``HED`` key produce one region each. Invalid JSON
    yields no regions.

    Args:
        document: Text snapshot of the JSON document

    Returns:
        Regions in document order
    """
    try:
        regions = _JsonRegionWalker(document).run()
    except (json.JSONDecodeError, ValueError, IndexError) as e:
        logger.debug(f"No HED regions in {document.uri}: invalid JSON ({e})")
        return []
    except RecursionError:
        logger.debug(f"No HED regions in {document.uri}: JSON nested too deeply")
        return []
    logger.debug(f"Found {len(regions)} HED regions in {document.uri}")
    return regions
