"""Shared fixtures: an in-memory vocabulary and injectable fakes.

Unit tests never download HED schemas or embedding models; the schema builder,
validator backend and embedding provider are all replaced here.
"""

import numpy as np
import pytest

from hed_lsp.document.types import TextDocument
from hed_lsp.schema.manager import SchemaManager
from hed_lsp.schema.types import TagAttributes, TagEntry, Vocabulary
from hed_lsp.validation.validation_types import ValidationIssue

# (long form, description, prefix, attributes)
_TAGS = [
    ("Event", "Something that happens at a given time and place.", "", {}),
    ("Event/Sensory-event", "Something perceivable by the participant.", "", {}),
    ("Event/Agent-action", "Any action engaged in by an agent.", "", {}),
    ("Event/Data-feature", "An event marking a feature computed from data.", "", {}),
    ("Agent", "Someone or something that takes an active role.", "", {"extension_allowed": True}),
    ("Agent/Animal-agent", "An agent that is an animal.", "", {"extension_allowed": True}),
    ("Agent/Human-agent", "A person who takes an active role.", "", {}),
    ("Item", "An independently existing thing.", "", {"extension_allowed": True}),
    ("Item/Biological-item", "An entity that is biological.", "", {"extension_allowed": True}),
    ("Item/Biological-item/Organism", "A living entity.", "", {"extension_allowed": True}),
    ("Item/Biological-item/Organism/Animal", "A living organism that has membranes and can move.", "", {"extension_allowed": True}),
    ("Item/Biological-item/Organism/Plant", "A living organism with cell walls.", "", {"extension_allowed": True}),
    ("Action", "Do something.", "", {"extension_allowed": True}),
    ("Action/Press", "Apply pressure to something.", "", {"extension_allowed": True}),
    ("Property", "Something that pertains to a thing.", "", {}),
    ("Property/Sensory-property/Sensory-presentation/Visual-presentation", "Something presented visually.", "", {}),
    ("Property/Sensory-property/Sensory-presentation/Auditory-presentation", "Something presented to the ear.", "", {}),
    (
        "Property/Data-property/Data-value/Spatiotemporal-value/Rate-of-change/Temporal-rate",
        "The number of items per unit of time.",
        "",
        {"takes_value": True, "unit_class": ("frequencyUnits",), "default_units": "Hz"},
    ),
    ("Property/Organizational-property/Definition", "A HED-specific utility tag.", "", {"require_child": True}),
    ("Property/Organizational-property/Def", "A reference to a definition.", "", {"require_child": True}),
    ("Property/Organizational-property/Def-expand", "An expanded definition reference.", "", {"require_child": True}),
    ("Seizure", "A clinical paroxysmal event.", "sc:", {}),
    ("Seizure/Focal-onset-seizure", "Seizure originating within one hemisphere.", "sc:", {}),
]


def make_entries() -> list[TagEntry]:
    children: dict[tuple[str, str], list[str]] = {}
    for long_form, _description, prefix, _attrs in _TAGS:
        segments = long_form.split("/")
        if len(segments) > 1:
            children.setdefault((prefix, segments[-2].lower()), []).append(segments[-1])

    entries = []
    for long_form, description, prefix, attrs in _TAGS:
        segments = long_form.split("/")
        short = segments[-1]
        entries.append(
            TagEntry(
                short_form=short,
                long_form=long_form,
                description=description,
                prefix=prefix,
                parent=segments[-2] if len(segments) > 1 else None,
                children=tuple(children.get((prefix, short.lower()), ())),
                attributes=TagAttributes(**attrs),
            )
        )
    return entries


@pytest.fixture
def vocabulary():
    """Base vocabulary plus an ``sc:`` library namespace."""
    return Vocabulary.from_entries(make_entries(), version="8.4.0,sc:score_2.1.0")


@pytest.fixture
def schema_manager(vocabulary):
    """SchemaManager whose builder hands out the in-memory vocabulary."""
    return SchemaManager(builder=lambda spec: vocabulary)


class FakeValidator:
    """Validator backend returning canned issues and recording its calls."""

    def __init__(self, issues=None, error: Exception | None = None):
        self.issues = list(issues or [])
        self.error = error
        self.calls = []

    def validate(self, hed_string, vocabulary, flags=None):
        self.calls.append((hed_string, flags))
        if self.error is not None:
            raise self.error
        return [], list(self.issues)


@pytest.fixture
def fake_validator():
    return FakeValidator()


class FakeProvider:
    """Embedding provider mapping texts onto fixed axes by keyword.

    Texts mentioning an axis word get that unit vector; anything else lands
    on the last axis, orthogonal to every named one.
    """

    AXES = ("rodent", "button", "sound")

    def __init__(self, aliases=None):
        self.aliases = aliases or {"rat": "rodent", "animal": "rodent", "push": "button", "press": "button"}
        self.calls = 0

    def _axis(self, text: str) -> int:
        lowered = text.lower()
        for word, axis in self.aliases.items():
            if word in lowered:
                return self.AXES.index(axis)
        for index, axis in enumerate(self.AXES):
            if axis in lowered:
                return index
        return len(self.AXES)

    def embed(self, texts):
        self.calls += 1
        vectors = np.zeros((len(texts), len(self.AXES) + 1), dtype=np.float32)
        for row, text in enumerate(texts):
            vectors[row, self._axis(text)] = 1.0
        return vectors


@pytest.fixture
def fake_provider():
    return FakeProvider()


def json_document(text: str, uri: str = "file:///data/task-test_events.json") -> TextDocument:
    return TextDocument(uri, text)


def tsv_document(text: str, uri: str = "file:///data/sub-01_task-test_events.tsv") -> TextDocument:
    return TextDocument(uri, text)


def issue(code: str, message: str = "problem", **kwargs) -> ValidationIssue:
    return ValidationIssue(code=code, level=kwargs.pop("level", "error"), message=message, **kwargs)
