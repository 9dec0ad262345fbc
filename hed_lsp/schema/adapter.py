"""Adapter from hedtools schema objects to the internal vocabulary types.

This is the only place that touches the shape of ``hed.HedSchema`` /
``hed.HedSchemaGroup`` tag entries. Conversion happens once, right after the
schema is built, and fails fast if the object does not look like a hedtools
schema.
"""

from __future__ import annotations

import logging
from typing import Any

from hed_lsp.schema.types import TagAttributes, TagEntry, Vocabulary
from hed_lsp.schema.versions import VersionSpec

logger = logging.getLogger(__name__)

VALUE_NODE = "#"


class HedToolsSchemaAdapter:
    """Explicit adapter over a hedtools schema (or schema group).

    Provides attribute lookup, parent/child traversal and the
    namespace-membership test, then converts everything to ``TagEntry``.
    """

    def __init__(self, schema: Any) -> None:
        """Initialize the adapter.

        Args:
            schema: ``HedSchema`` or ``HedSchemaGroup`` from hedtools

        Raises:
            TypeError: If the object does not expose the expected schema interface
        """
        if not hasattr(schema, "valid_prefixes") or not callable(
            getattr(schema, "schema_for_namespace", None)
        ):
            raise TypeError(f"Unexpected schema object: {type(schema).__name__}")
        self.schema = schema

    def namespaces(self) -> list[str]:
        """Namespace prefixes known to the schema ("" for base, "sc:" etc.)."""
        return list(self.schema.valid_prefixes)

    def raw_entries(self, prefix: str) -> list[Any]:
        """Tag entries of the schema registered under ``prefix``."""
        namespace_schema = self.schema.schema_for_namespace(prefix)
        if namespace_schema is None:
            return []
        tags = getattr(namespace_schema, "tags", None)
        if tags is None or not hasattr(tags, "items"):
            raise TypeError(f"Schema for namespace '{prefix}' has no tag section")
        return [entry for _name, entry in tags.items()]

    @staticmethod
    def attribute(entry: Any, name: str) -> Any:
        """Raw attribute value of an entry (None if absent)."""
        attributes = getattr(entry, "attributes", None)
        if not isinstance(attributes, dict):
            raise TypeError(f"Schema entry {entry!r} has no attribute table")
        return attributes.get(name)

    @classmethod
    def has_attribute(cls, entry: Any, name: str) -> bool:
        value = cls.attribute(entry, name)
        return value is not None and value is not False and value != "false"

    @classmethod
    def attribute_list(cls, entry: Any, name: str) -> tuple[str, ...]:
        """Attribute value split into a tuple (comma separated in the schema)."""
        value = cls.attribute(entry, name)
        if not value or value is True:
            return ()
        if isinstance(value, (list, tuple, set)):
            return tuple(str(v) for v in value)
        return tuple(part.strip() for part in str(value).split(",") if part.strip())

    @classmethod
    def library_of(cls, entry: Any) -> str:
        """Library name that owns the entry ("" for base-schema entries)."""
        value = cls.attribute(entry, "inLibrary")
        return str(value) if value and value is not True else ""

    @staticmethod
    def short_name(entry: Any) -> str:
        return entry.short_tag_name

    @staticmethod
    def long_name(entry: Any) -> str:
        return getattr(entry, "long_tag_name", None) or entry.short_tag_name

    @classmethod
    def parent_name(cls, entry: Any) -> str | None:
        """Parent short form, derived from the long name."""
        segments = cls.long_name(entry).split("/")
        return segments[-2] if len(segments) > 1 else None

    def to_vocabulary(self, spec: VersionSpec) -> Vocabulary:
        """Convert the wrapped schema into a ``Vocabulary``.

        Inside a prefixed namespace only library-owned entries belong to it,
        unless the library schema carries no ownership marks at all. The base
        namespace drops entries owned by a library that a prefixed namespace
        already claims.
        """
        ordered = [p for p in spec.prefixes if p in self.namespaces()]
        ordered += [p for p in self.namespaces() if p not in ordered]

        raw_by_prefix = {prefix: self.raw_entries(prefix) for prefix in ordered}

        claimed: set[str] = set()
        for prefix, raw in raw_by_prefix.items():
            if prefix:
                claimed.update(lib for lib in (self.library_of(e) for e in raw) if lib)

        namespaces: dict[str, list[TagEntry]] = {}
        for prefix, raw in raw_by_prefix.items():
            if prefix:
                owned = [e for e in raw if self.library_of(e)]
                selected = owned or raw
            else:
                selected = [e for e in raw if self.library_of(e) not in claimed]
            namespaces[prefix] = self._convert(selected, prefix)
            logger.debug(f"Namespace '{prefix or 'base'}': {len(namespaces[prefix])} tags")

        return Vocabulary(spec, namespaces, schema=self.schema)

    def _convert(self, entries: list[Any], prefix: str) -> list[TagEntry]:
        value_nodes: dict[str, Any] = {}
        regular: list[Any] = []
        for entry in entries:
            if self.short_name(entry) == VALUE_NODE:
                parent = self.parent_name(entry)
                if parent:
                    value_nodes[parent.lower()] = entry
                continue
            regular.append(entry)

        children: dict[str, list[str]] = {}
        for entry in regular:
            parent = self.parent_name(entry)
            if parent:
                children.setdefault(parent.lower(), []).append(self.short_name(entry))

        converted = []
        for entry in regular:
            short = self.short_name(entry)
            value_node = value_nodes.get(short.lower())
            default_units = self.attribute(entry, "defaultUnits")
            if value_node is not None and not default_units:
                default_units = self.attribute(value_node, "defaultUnits")
            attributes = TagAttributes(
                extension_allowed=self.has_attribute(entry, "extensionAllowed"),
                takes_value=value_node is not None or self.has_attribute(entry, "takesValue"),
                unit_class=self.attribute_list(value_node if value_node is not None else entry, "unitClass"),
                suggested_tag=self.attribute_list(entry, "suggestedTag"),
                related_tag=self.attribute_list(entry, "relatedTag"),
                require_child=self.has_attribute(entry, "requireChild"),
                unique=self.has_attribute(entry, "unique"),
                default_units=str(default_units) if default_units and default_units is not True else None,
            )
            converted.append(
                TagEntry(
                    short_form=short,
                    long_form=self.long_name(entry),
                    description=getattr(entry, "description", None) or "",
                    prefix=prefix,
                    parent=self.parent_name(entry),
                    children=tuple(children.get(short.lower(), ())),
                    attributes=attributes,
                )
            )
        return converted
