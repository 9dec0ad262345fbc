"""Tests for the in-process hedtools validator backend."""

import pytest
from hed.errors import ErrorSeverity

from hed_lsp.schema.manager import SchemaManager
from hed_lsp.schema.types import Vocabulary
from hed_lsp.validation import HedPythonValidator, HedToolsAPIValidator, get_validator
from hed_lsp.validation.hed_validator import convert_issue
from hed_lsp.validation.validation_types import ValidationFlags


class FakeTag:
    """Stands in for a hedtools HedTag: a string with a span."""

    def __init__(self, text, span):
        self.text = text
        self.span = span

    def __str__(self):
        return self.text


class TestConvertIssue:
    """Tests for hedtools issue dict conversion."""

    def test_source_tag_span(self):
        converted = convert_issue(
            {"code": "TAG_INVALID", "message": "Bad tag", "source_tag": FakeTag("Blorb", (7, 12))}
        )
        assert converted.code == "TAG_INVALID"
        assert converted.level == "error"
        assert converted.tag == "Blorb"
        assert converted.bounds == (7, 12)

    def test_warning_severity(self):
        converted = convert_issue(
            {"code": "TAG_EXTENDED", "message": "Extended", "severity": ErrorSeverity.WARNING}
        )
        assert converted.level == "warning"

    def test_sub_code_kept_as_internal(self):
        converted = convert_issue({"code": "DEF_INVALID", "sub_code": "HED_DEF_UNMATCHED", "message": "x"})
        assert converted.internal_code == "HED_DEF_UNMATCHED"

    def test_quoted_tag_and_char_index(self):
        converted = convert_issue({"code": "CHARACTER_INVALID", "message": "Invalid in 'Ev$ent'", "char_index": 2})
        assert converted.tag == "Ev$ent"
        assert converted.char_index == 2
        assert converted.bounds is None


class TestGetValidator:
    """Tests for backend selection."""

    def test_local(self):
        assert isinstance(get_validator("local"), HedPythonValidator)

    def test_remote(self):
        validator = get_validator("remote", base_url="https://example.test/hed/")
        assert isinstance(validator, HedToolsAPIValidator)
        assert validator.base_url == "https://example.test/hed"

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown validator backend"):
            get_validator("carrier-pigeon")


def test_vocabulary_without_schema(vocabulary):
    with pytest.raises(ValueError, match="no hedtools schema"):
        HedPythonValidator().validate("Event", vocabulary)
    with pytest.raises(ValueError, match="no hedtools schema"):
        HedPythonValidator().check_definitions(["(Definition/Go, (Event))"], vocabulary)


@pytest.mark.integration
class TestWithRealSchema:
    """Validation against a real HED schema (downloaded or cached by hedtools)."""

    @pytest.fixture(scope="class")
    def real_vocabulary(self) -> Vocabulary:
        from hed_lsp.schema.manager import build_hedtools_vocabulary
        from hed_lsp.schema.versions import VersionSpec

        return build_hedtools_vocabulary(VersionSpec.parse("8.3.0"))

    def test_vocabulary_converted(self, real_vocabulary):
        assert real_vocabulary.schema is not None
        names = {entry.short_form for entry in real_vocabulary.entries()}
        assert {"Event", "Sensory-event", "Agent-action"} <= names

    def test_valid_string(self, real_vocabulary):
        syntax, semantic = HedPythonValidator().validate("Sensory-event, Visual-presentation", real_vocabulary)
        assert syntax == []
        assert [i for i in semantic if i.level == "error"] == []

    def test_invalid_tag(self, real_vocabulary):
        _, semantic = HedPythonValidator().validate("Sensory-event, Blorbxyz", real_vocabulary)
        assert any(i.level == "error" for i in semantic)

    def test_definition_reference_resolves(self, real_vocabulary):
        flags = ValidationFlags(definitions=("(Definition/GoTrial, (Sensory-event))",))
        syntax, semantic = HedPythonValidator().validate("Def/GoTrial", real_vocabulary, flags)
        assert [i for i in syntax + semantic if i.level == "error"] == []

    def test_check_definitions(self, real_vocabulary):
        """A placeholder definition needs a # in its body."""
        broken, valid = HedPythonValidator().check_definitions(
            ["(Definition/Go/#, (Visual-presentation))", "(Definition/Cue, (Sensory-event))"], real_vocabulary
        )
        assert any(i.code == "DEFINITION_INVALID" and i.level == "error" for i in broken)
        assert valid == []

    @pytest.mark.asyncio
    async def test_schema_manager_default_builder(self):
        manager = SchemaManager(default_version="8.3.0")
        vocabulary = await manager.load()
        assert vocabulary.version == "8.3.0"
        assert await manager.find_tag("Sensory-event") is not None
