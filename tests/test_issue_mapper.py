"""Tests for mapping validator issues onto document ranges."""

import json

import pytest
from conftest import FakeValidator, issue, json_document, tsv_document

from hed_lsp.document.regions import extract_regions
from hed_lsp.document.types import Position, Range
from hed_lsp.errors import PositionResolutionFailure
from hed_lsp.schema.manager import SchemaManager
from hed_lsp.utils.hed_strings import remove_placeholders
from hed_lsp.validation.issue_mapper import (
    DEF_VALUE_EXTRA,
    DEF_VALUE_MISSING,
    INTERNAL_ERROR_CODE,
    SCHEMA_LOAD_CODE,
    IssueMapper,
    normalize_issue_code,
    resolve_issue_bounds,
)
from hed_lsp.validation.validation_types import Diagnostic


def sidecar(content: dict):
    return json_document(json.dumps(content))


def span(document, needle: str, length: int | None = None) -> Range:
    start = document.text.index(needle)
    return document.range_of(start, start + (len(needle) if length is None else length))


class TestNormalizeIssueCode:
    """Tests for public code selection."""

    def test_specific_code_kept(self):
        assert normalize_issue_code(issue("TAG_INVALID", internal_code="invalidTag")) == "TAG_INVALID"

    def test_generic_code_mapped(self):
        assert normalize_issue_code(issue("VALIDATION_ERROR", internal_code="commaMissing")) == "COMMA_MISSING"
        assert normalize_issue_code(issue("", internal_code="HED_UNITS_INVALID")) == "UNITS_INVALID"

    def test_unmapped_internal_code_passes_through(self):
        assert normalize_issue_code(issue("UNKNOWN", internal_code="somethingNew")) == "somethingNew"

    def test_nothing_known(self):
        assert normalize_issue_code(issue("")) == "UNKNOWN"


class TestResolveIssueBounds:
    """Tests for bounds priority."""

    CONTENT = "Tag-a, {col}, Tag-b"

    def test_explicit_bounds(self):
        strip = remove_placeholders(self.CONTENT)
        cleaned_start = strip.text.index("Tag-b")
        bounds = resolve_issue_bounds(issue("X", bounds=(cleaned_start, cleaned_start + 5)), strip, self.CONTENT)
        assert self.CONTENT[bounds[0] : bounds[1]] == "Tag-b"

    def test_char_index(self):
        strip = remove_placeholders(self.CONTENT)
        index = strip.text.index("Tag-b")
        bounds = resolve_issue_bounds(issue("X", char_index=index), strip, self.CONTENT)
        assert bounds == (self.CONTENT.index("Tag-b"), self.CONTENT.index("Tag-b") + 1)

    def test_bounds_win_over_tag(self):
        strip = remove_placeholders(self.CONTENT)
        assert resolve_issue_bounds(issue("X", bounds=(0, 5), tag="Tag-b"), strip, self.CONTENT) == (0, 5)

    def test_named_tag(self):
        strip = remove_placeholders(self.CONTENT)
        assert resolve_issue_bounds(issue("X", tag="tag-b"), strip, self.CONTENT) == (14, 19)

    def test_unresolvable(self):
        strip = remove_placeholders(self.CONTENT)
        with pytest.raises(PositionResolutionFailure):
            resolve_issue_bounds(issue("X", tag="Missing"), strip, self.CONTENT)


class TestValidateDocument:
    """Tests for IssueMapper.validate_document."""

    @pytest.mark.asyncio
    async def test_placeholder_removed_before_validation(self, schema_manager, fake_validator):
        """A valid string with a column placeholder yields nothing."""
        document = sidecar({"event": {"HED": "Sensory-event, {col}"}})
        regions = extract_regions(document)
        diagnostics = await IssueMapper(schema_manager, fake_validator).validate_document(document, version="8.4.0")

        assert [r.path for r in regions] == ["event.HED"]
        assert diagnostics == []
        assert [call[0] for call in fake_validator.calls] == ["Sensory-event"]

    @pytest.mark.asyncio
    async def test_def_with_value_for_placeholder_definition(self, schema_manager, fake_validator):
        """Def/Go/1.5 against Definition/Go/# is not flagged."""
        document = sidecar(
            {
                "rate": {"HED": "Def/Go/1.5, Sensory-event"},
                "defs": {"HED": "(Definition/Go/#, (Visual-presentation))"},
            }
        )
        diagnostics = await IssueMapper(schema_manager, fake_validator).validate_document(document)

        assert not any("requires a value" in d.message for d in diagnostics)
        assert diagnostics == []
        _, flags = fake_validator.calls[0]
        assert flags.definitions == ("(Definition/Go/#, (Visual-presentation))",)

    @pytest.mark.asyncio
    async def test_def_value_missing(self, schema_manager, fake_validator):
        document = sidecar(
            {"rate": {"HED": "Def/Go, Event"}, "defs": {"HED": "(Definition/Go/#, (Visual-presentation))"}}
        )
        (diagnostic,) = await IssueMapper(schema_manager, fake_validator).validate_document(document)

        assert diagnostic.code == DEF_VALUE_MISSING
        assert diagnostic.severity == "warning"
        assert diagnostic.range == span(document, "Def/Go")
        assert "Def/Go/value" in diagnostic.message

    @pytest.mark.asyncio
    async def test_def_value_extra(self, schema_manager, fake_validator):
        document = sidecar({"a": {"HED": "Def-expand/Cue/3"}, "defs": {"HED": "(Definition/Cue, (Event))"}})
        (diagnostic,) = await IssueMapper(schema_manager, fake_validator).validate_document(document)

        assert diagnostic.code == DEF_VALUE_EXTRA
        assert diagnostic.range == span(document, "Def-expand/Cue/3")

    @pytest.mark.asyncio
    async def test_validator_def_issue_not_repeated(self, schema_manager):
        """A DEF issue from the validator at the same spot suppresses the local warning."""
        validator = FakeValidator([issue("DEF_INVALID", "Go needs a value", tag="Def/Go")])
        document = sidecar(
            {"rate": {"HED": "Def/Go, Event"}, "defs": {"HED": "(Definition/Go/#, (Visual-presentation))"}}
        )
        diagnostics = await IssueMapper(schema_manager, validator).validate_document(document)

        assert [d.code for d in diagnostics if d.range == span(document, "Def/Go")] == ["DEF_INVALID"]

    @pytest.mark.asyncio
    async def test_issue_ranges(self, schema_manager):
        """Issues land on the offending tag in the original string."""
        validator = FakeValidator(
            [
                issue("TAG_INVALID", "Invalid tag", tag="Blorb"),
                issue("VALIDATION_ERROR", "Missing comma", internal_code="commaMissing", char_index=0),
            ]
        )
        document = sidecar({"event": {"HED": "{col}, Event, Blorb"}})
        diagnostics = await IssueMapper(schema_manager, validator).validate_document(document)

        assert [d.code for d in diagnostics] == ["TAG_INVALID", "COMMA_MISSING"]
        assert diagnostics[0].range == span(document, "Blorb")
        assert diagnostics[1].range == span(document, "Event", 1)

    @pytest.mark.asyncio
    async def test_unresolved_issue_covers_region(self, schema_manager):
        validator = FakeValidator([issue("TAG_INVALID", "somewhere", level="warning")])
        document = sidecar({"event": {"HED": "Event, Item"}})
        (diagnostic,) = await IssueMapper(schema_manager, validator).validate_document(document)

        assert diagnostic.range == extract_regions(document)[0].range
        assert diagnostic.severity == "warning"

    @pytest.mark.asyncio
    async def test_validator_exception(self, schema_manager):
        """A validator crash becomes one diagnostic over the region."""
        validator = FakeValidator(error=RuntimeError("kaboom"))
        document = sidecar({"event": {"HED": "Event"}, "other": {"HED": "Item"}})
        diagnostics = await IssueMapper(schema_manager, validator).validate_document(document)

        regions = extract_regions(document)
        assert [d.code for d in diagnostics] == [INTERNAL_ERROR_CODE, INTERNAL_ERROR_CODE]
        assert [d.range for d in diagnostics] == [r.range for r in regions]
        assert "kaboom" in diagnostics[0].message

    @pytest.mark.asyncio
    async def test_schema_failure(self, fake_validator):
        """An unloadable schema gives a single diagnostic at the document start."""

        def builder(spec):
            raise OSError("no network")

        document = sidecar({"event": {"HED": "Event"}})
        diagnostics = await IssueMapper(SchemaManager(builder=builder), fake_validator).validate_document(document)

        assert len(diagnostics) == 1
        assert diagnostics[0].code == SCHEMA_LOAD_CODE
        assert diagnostics[0].range == Range(Position(0, 0), Position(0, 0))
        assert fake_validator.calls == []

    @pytest.mark.asyncio
    async def test_placeholder_only_strings_skipped(self, schema_manager, fake_validator):
        document = sidecar({"a": {"HED": "{col}"}, "b": {"HED": "   "}, "c": {"HED": "({x}, {y})"}})
        assert await IssueMapper(schema_manager, fake_validator).validate_document(document) == []
        assert fake_validator.calls == []

    @pytest.mark.asyncio
    async def test_no_regions(self, schema_manager, fake_validator):
        document = sidecar({"onset": {"Description": "Event onset"}})
        assert await IssueMapper(schema_manager, fake_validator).validate_document(document) == []

    @pytest.mark.asyncio
    async def test_async_validator(self, schema_manager):
        """Backends with an async validate method are awaited."""

        class AsyncValidator:
            async def validate(self, hed_string, vocabulary, flags):
                return [issue("TAG_INVALID", "bad", tag="Blorb")], []

        document = sidecar({"event": {"HED": "Blorb"}})
        (diagnostic,) = await IssueMapper(schema_manager, AsyncValidator()).validate_document(document)
        assert diagnostic.range == span(document, "Blorb")

    @pytest.mark.asyncio
    async def test_tsv_regions(self, schema_manager):
        validator = FakeValidator([issue("TAG_INVALID", "bad", tag="Blorb")])
        document = tsv_document("onset\tduration\tHED\n1.0\t0.5\tEvent, Blorb\n")
        (diagnostic,) = await IssueMapper(schema_manager, validator).validate_document(document)
        assert diagnostic.range == span(document, "Blorb")


class DefinitionCheckingValidator(FakeValidator):
    """Rejects placeholder definitions whose body has no ``#``."""

    def __init__(self, issues=None, tag=None):
        super().__init__(issues)
        self.tag = tag
        self.checked = []

    def check_definitions(self, definitions, vocabulary):
        self.checked.extend(definitions)
        results = []
        for definition in definitions:
            head, _, body = definition.partition(",")
            if head.rstrip().endswith("/#") and "#" not in body:
                results.append([issue("DEFINITION_INVALID", "Expected 1 placeholder in body", tag=self.tag)])
            else:
                results.append([])
        return results


class TestDefinitionChecks:
    """Broken definitions are reported on the definition itself."""

    GO = "(Definition/Go/#, (Visual-presentation))"

    @pytest.mark.asyncio
    async def test_placeholder_definition_without_hash(self, schema_manager):
        validator = DefinitionCheckingValidator()
        document = sidecar({"rate": {"HED": "Def/Go/1.5"}, "defs": {"HED": self.GO}})
        (diagnostic,) = await IssueMapper(schema_manager, validator).validate_document(document)

        assert diagnostic.code == "DEFINITION_INVALID"
        assert diagnostic.severity == "error"
        assert diagnostic.range == span(document, self.GO)
        assert validator.checked == [self.GO]

    @pytest.mark.asyncio
    async def test_issue_narrowed_to_tag(self, schema_manager):
        validator = DefinitionCheckingValidator(tag="Definition/Go/#")
        document = sidecar({"defs": {"HED": "Event, " + self.GO}})
        (diagnostic,) = await IssueMapper(schema_manager, validator).validate_document(document)

        assert diagnostic.range == span(document, "Definition/Go/#")

    @pytest.mark.asyncio
    async def test_valid_definition(self, schema_manager):
        validator = DefinitionCheckingValidator()
        document = sidecar({"defs": {"HED": "(Definition/Rate/#, (Temporal-rate/# Hz))"}})
        assert await IssueMapper(schema_manager, validator).validate_document(document) == []

    @pytest.mark.asyncio
    async def test_not_repeated_when_region_reports_it(self, schema_manager):
        validator = DefinitionCheckingValidator([issue("DEFINITION_INVALID", "bad", bounds=(0, len(self.GO)))])
        document = sidecar({"defs": {"HED": self.GO}})
        diagnostics = await IssueMapper(schema_manager, validator).validate_document(document)

        assert [d.code for d in diagnostics] == ["DEFINITION_INVALID"]

    @pytest.mark.asyncio
    async def test_check_failure(self, schema_manager):
        class BrokenChecker(FakeValidator):
            def check_definitions(self, definitions, vocabulary):
                raise RuntimeError("boom")

        document = sidecar({"defs": {"HED": self.GO}})
        (diagnostic,) = await IssueMapper(schema_manager, BrokenChecker()).validate_document(document)

        assert diagnostic.code == INTERNAL_ERROR_CODE
        assert diagnostic.range == span(document, self.GO)


def test_diagnostic_to_dict():
    document = sidecar({"event": {"HED": "Blorb"}})
    item = Diagnostic(range=span(document, "Blorb"), severity="warning", message="m", code="TAG_INVALID").to_dict()
    assert item["severity"] == 2
    assert item["code"] == "TAG_INVALID"
    assert item["source"] == "hed"
    assert item["range"]["start"] == {"line": 0, "character": document.text.index("Blorb")}
