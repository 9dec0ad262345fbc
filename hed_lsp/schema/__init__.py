"""HED vocabulary index.

- SchemaManager: loads, caches and queries HED schemas per version spec
- HedToolsSchemaAdapter: converts hedtools schema objects at the load boundary
- Vocabulary / TagEntry: internal representation of a loaded schema
"""

from hed_lsp.schema.adapter import HedToolsSchemaAdapter
from hed_lsp.schema.manager import (
    SchemaManager,
    child_tags,
    find_extensible_parents,
    find_tag,
    search_by_prefix,
    search_containing,
    top_level_tags,
)
from hed_lsp.schema.types import TagAttributes, TagEntry, Vocabulary, split_prefix
from hed_lsp.schema.versions import DEFAULT_SCHEMA_VERSION, VersionSpec, normalize_version

__all__ = [
    "DEFAULT_SCHEMA_VERSION",
    "HedToolsSchemaAdapter",
    "SchemaManager",
    "TagAttributes",
    "TagEntry",
    "VersionSpec",
    "Vocabulary",
    "child_tags",
    "find_extensible_parents",
    "find_tag",
    "normalize_version",
    "search_by_prefix",
    "search_containing",
    "split_prefix",
    "top_level_tags",
]
