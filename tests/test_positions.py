"""Tests for text snapshots, ranges and region position mapping."""

from conftest import json_document

from hed_lsp.document.regions import content_offset_at, region_at, region_at_position, tag_at_offset
from hed_lsp.document.types import HedRegion, Position, Range, TextDocument


class TestTextDocument:
    """Tests for offset <-> position conversion."""

    def test_round_trip_lf(self):
        document = TextDocument("file:///a.json", "ab\ncd\n\nef")
        assert document.position_at(4) == Position(1, 1)
        assert document.offset_at(Position(3, 1)) == 8
        assert document.line_count == 4

    def test_crlf_and_cr(self):
        """\\r\\n and lone \\r both end a line."""
        document = TextDocument("file:///a.json", "ab\r\ncd\ref")
        assert document.position_at(4) == Position(1, 0)
        assert document.position_at(7) == Position(2, 0)
        assert document.offset_at(Position(2, 1)) == 8

    def test_clamping(self):
        """Out-of-range positions clamp to the text."""
        document = TextDocument("file:///a.json", "ab\ncd")
        assert document.offset_at(Position(0, 99)) == 3
        assert document.offset_at(Position(9, 0)) == 5
        assert document.position_at(-3) == Position(0, 0)


class TestRange:
    """Tests for Range.contains."""

    def test_boundaries_inclusive(self):
        """Both endpoints are inside the range."""
        r = Range(Position(1, 4), Position(1, 10))
        assert r.contains(Position(1, 4))
        assert r.contains(Position(1, 10))
        assert not r.contains(Position(1, 11))
        assert not r.contains(Position(0, 5))

    def test_multiline(self):
        r = Range(Position(1, 4), Position(3, 0))
        assert r.contains(Position(2, 100))


class TestHedRegionMapping:
    """Tests for in-string <-> document offsets."""

    def test_plain_mapping(self):
        region = HedRegion("Event, Item", Range(Position(0, 9), Position(0, 22)), "HED", content_offset=10)
        assert region.to_document_offset(7) == 17
        assert region.to_content_offset(17) == 7
        assert region.to_content_offset(0) == 0
        assert region.to_content_offset(99) == len("Event, Item")

    def test_raw_offsets_mapping(self):
        """Escaped characters are skipped over on the raw side."""
        region = HedRegion(
            'a"b',
            Range(Position(0, 0), Position(0, 7)),
            "HED",
            content_offset=1,
            raw_offsets=(1, 2, 4, 5),
        )
        assert region.to_document_offset(2) == 4
        assert region.to_document_offset(3) == 5
        assert region.to_content_offset(3) == 1
        assert region.to_content_offset(4) == 2


class TestRegionLookup:
    """Tests for finding the region and token under the cursor."""

    def test_region_at_position(self):
        document = json_document('{"a": {"HED": "Event"}, "b": {"HED": "Item"}}')
        region = region_at_position(document, Position(0, 39))
        assert region.path == "b.HED"
        assert region_at_position(document, Position(0, 2)) is None

    def test_region_boundary_positions(self):
        """The quote positions belong to the region."""
        document = json_document('{"HED": "Event"}')
        region = region_at_position(document, Position(0, 8))
        assert region is not None
        assert content_offset_at(region, document, Position(0, 8)) == 0
        assert region_at([region], Position(0, 15)) is region

    def test_tag_at_offset(self):
        """Tokens stop at separators and are trimmed."""
        content = "Sensory-event, (Red, Item/Object)"
        token = tag_at_offset(content, content.index("Object"))
        assert (token.text, token.start, token.end) == ("Item/Object", 21, 32)
        assert tag_at_offset(content, 3).text == "Sensory-event"

    def test_tag_at_offset_empty(self):
        assert tag_at_offset("Event, ", 7) is None
        assert tag_at_offset("", 0) is None
