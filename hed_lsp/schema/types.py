"""Internal representation of a loaded HED vocabulary.

External schema objects are converted into these types once, at the load
boundary (see ``hed_lsp.schema.adapter``). Everything downstream works on
``TagEntry`` and ``Vocabulary`` only.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from hed_lsp.schema.versions import VersionSpec


@dataclass(frozen=True)
class TagAttributes:
    """Schema attributes relevant to completion and hover."""

    extension_allowed: bool = False
    takes_value: bool = False
    unit_class: tuple[str, ...] = ()
    suggested_tag: tuple[str, ...] = ()
    related_tag: tuple[str, ...] = ()
    require_child: bool = False
    unique: bool = False
    default_units: str | None = None


@dataclass(frozen=True)
class TagEntry:
    """A tag from the HED schema.

    Attributes:
        short_form: Tag name (e.g., "Square")
        long_form: Full path (e.g., "Item/Object/Geometric-object/2D-shape/Rectangle/Square")
        description: Tag description from the schema
        prefix: Namespace prefix, "" for base schema, "sc:" for SCORE, etc.
        parent: Parent short form (name-based reference), None for top-level tags
        children: Child short forms
        attributes: Tag attributes
    """

    short_form: str
    long_form: str
    description: str = ""
    prefix: str = ""
    parent: str | None = None
    children: tuple[str, ...] = ()
    attributes: TagAttributes = field(default_factory=TagAttributes)

    @property
    def prefixed_name(self) -> str:
        """Short form qualified with its namespace prefix."""
        return f"{self.prefix}{self.short_form}"

    def __repr__(self) -> str:
        return f"TagEntry({self.prefixed_name})"


def split_prefix(name: str) -> tuple[str | None, str]:
    """Split "sc:Seizure" into ("sc:", "Seizure"); unprefixed names give (None, name)."""
    head, sep, tail = name.partition(":")
    if sep and head and "/" not in head:
        return f"{head}:", tail
    return None, name


class Vocabulary:
    """A loaded HED vocabulary, merged over one base and zero or more library namespaces.

    Iteration order is stable: namespaces in version-spec order, entries in
    schema order.
    """

    def __init__(
        self,
        spec: VersionSpec,
        namespaces: dict[str, list[TagEntry]],
        schema: Any = None,
    ) -> None:
        """Initialize a vocabulary.

        Args:
            spec: Version spec the vocabulary was built from
            namespaces: Ordered mapping of namespace prefix -> tag entries
            schema: Raw schema object handed to the external validator
        """
        self.spec = spec
        self.schema = schema
        self._namespaces: dict[str, tuple[TagEntry, ...]] = {
            prefix: tuple(entries) for prefix, entries in namespaces.items()
        }

    @classmethod
    def from_entries(cls, entries: list[TagEntry], version: str = "8.4.0", schema: Any = None) -> Vocabulary:
        """Build a vocabulary from a flat entry list, grouping by entry prefix."""
        namespaces: dict[str, list[TagEntry]] = {}
        for entry in entries:
            namespaces.setdefault(entry.prefix, []).append(entry)
        return cls(VersionSpec.parse(version), namespaces, schema=schema)

    @property
    def version(self) -> str:
        return self.spec.canonical

    @property
    def namespaces(self) -> list[str]:
        return list(self._namespaces)

    def entries(self, namespace: str | None = None) -> Iterator[TagEntry]:
        """Iterate tag entries.

        Args:
            namespace: Restrict to one namespace prefix ("" = base). None means
                every namespace (prefix-agnostic).
        """
        if namespace is not None:
            yield from self._namespaces.get(namespace, ())
            return
        for entries in self._namespaces.values():
            yield from entries

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._namespaces.values())

    def __repr__(self) -> str:
        return f"Vocabulary({self.version}, tags={len(self)})"
