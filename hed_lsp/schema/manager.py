"""HED schema manager.

Handles loading, caching and querying HED schemas (vocabularies), merging a
base namespace with zero or more prefixed library namespaces. One manager is
owned by each language-service session; nothing here is module-global.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import re
from collections.abc import Awaitable, Callable
from pathlib import Path
from urllib.parse import unquote, urlparse

from hed_lsp.errors import SchemaLoadError
from hed_lsp.schema.adapter import HedToolsSchemaAdapter
from hed_lsp.schema.types import TagEntry, Vocabulary, split_prefix
from hed_lsp.schema.versions import DEFAULT_SCHEMA_VERSION, VersionSpec, normalize_version

logger = logging.getLogger(__name__)

DESCRIPTOR_FILE = "dataset_description.json"
DESCRIPTOR_VERSION_FIELD = "HEDVersion"
DEFAULT_SEARCH_DEPTH = 10
MAX_EXTENSIBLE_PARENTS = 10

SchemaBuilder = Callable[[VersionSpec], "Vocabulary | Awaitable[Vocabulary]"]


def build_hedtools_vocabulary(spec: VersionSpec) -> Vocabulary:
    """Build a vocabulary with hedtools.

    Downloads (or reads from the hedtools cache) every schema in the version spec and
    converts the result through ``HedToolsSchemaAdapter``.

    Args:
        spec: Version spec to load

    Returns:
        Converted vocabulary
    """
    from hed import load_schema_version

    versions = spec.as_list()
    schema = load_schema_version(versions if len(versions) > 1 else versions[0])
    return HedToolsSchemaAdapter(schema).to_vocabulary(spec)


async def _default_builder(spec: VersionSpec) -> Vocabulary:
    return await asyncio.to_thread(build_hedtools_vocabulary, spec)


class SchemaManager:
    """Schema manager for HED vocabularies.

    Provides caching by canonical version string, coalescing of concurrent
    loads, descriptor-file version detection and tag lookups.

    Example:
        >>> manager = SchemaManager()
        >>> children = await manager.get_child_tags("Event")
    """

    def __init__(
        self,
        builder: SchemaBuilder | None = None,
        default_version: str = DEFAULT_SCHEMA_VERSION,
        search_depth: int = DEFAULT_SEARCH_DEPTH,
    ) -> None:
        """Initialize the schema manager.

        Args:
            builder: External schema builder, ``build(spec) -> Vocabulary``
                (sync or async). Defaults to hedtools.
            default_version: Version used when a request names none
            search_depth: Max directories walked upward for a descriptor file
        """
        self._builder = builder or _default_builder
        self._current_version = normalize_version(default_version) or DEFAULT_SCHEMA_VERSION
        self.search_depth = search_depth
        self._cache: dict[str, Vocabulary] = {}
        self._inflight: dict[str, asyncio.Task[Vocabulary]] = {}
        self._detected_versions: dict[str, str | None] = {}

    @property
    def current_version(self) -> str:
        return self._current_version

    def set_current_version(self, version: str) -> None:
        """Set the version used when a request does not name one."""
        normalized = normalize_version(version)
        if normalized:
            self._current_version = normalized

    async def load(self, version: str | list[str] | None = None) -> Vocabulary:
        """Get or load the vocabulary for a version spec.

        Concurrent calls for the same canonical spec share one build.

        Args:
            version: Version spec (defaults to the current version)

        Returns:
            Loaded vocabulary

        Raises:
            SchemaLoadError: If the builder fails; the failure is not cached
        """
        spec = VersionSpec.parse(version or self._current_version)
        key = spec.canonical
        if not key:
            raise SchemaLoadError(str(version), "empty version specifier")

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._build(spec))
            self._inflight[key] = task
        try:
            return await asyncio.shield(task)
        finally:
            if task.done() and self._inflight.get(key) is task:
                del self._inflight[key]

    async def _build(self, spec: VersionSpec) -> Vocabulary:
        key = spec.canonical
        logger.info(f"Loading HED schema {key}")
        try:
            result = self._builder(spec)
            if inspect.isawaitable(result):
                result = await result
        except SchemaLoadError:
            raise
        except Exception as e:
            logger.error(f"Failed to load HED schema {key}: {e}")
            raise SchemaLoadError(key, str(e)) from e

        if not isinstance(result, Vocabulary):
            raise SchemaLoadError(key, f"builder returned {type(result).__name__}, expected Vocabulary")

        self._cache[key] = result
        logger.info(f"Loaded HED schema {key} ({len(result)} tags)")
        return result

    async def detect_version_for_document(self, locator: str) -> str | None:
        """Detect the HED version for a document from its BIDS descriptor.

        Walks upward from the document's directory (at most ``search_depth``
        levels) looking for ``dataset_description.json`` and reads its
        ``HEDVersion`` field, which may be a string or a list.

        Args:
            locator: Document path or ``file://`` URI

        Returns:
            Canonical version string, or None if no descriptor declares one
        """
        if locator in self._detected_versions:
            return self._detected_versions[locator]

        detected = self._find_descriptor_version(_locator_to_path(locator))
        self._detected_versions[locator] = detected
        if detected:
            logger.debug(f"Detected HED version {detected} for {locator}")
        return detected

    def _find_descriptor_version(self, path: Path | None) -> str | None:
        if path is None:
            return None
        directory = path.parent
        for _ in range(self.search_depth):
            candidate = directory / DESCRIPTOR_FILE
            if candidate.is_file():
                return _read_descriptor_version(candidate)
            if directory.parent == directory:
                break
            directory = directory.parent
        return None

    def invalidate_detected_version(self, locator: str | None = None) -> None:
        """Forget a detected version (or all of them when locator is None)."""
        if locator is None:
            self._detected_versions.clear()
        else:
            self._detected_versions.pop(locator, None)

    def clear_cache(self) -> None:
        """Clear the vocabulary cache and the detected-version cache."""
        self._cache.clear()
        self._detected_versions.clear()

    async def get_top_level_tags(self, version: str | None = None, namespace: str | None = None) -> list[TagEntry]:
        return top_level_tags(await self.load(version), namespace)

    async def get_child_tags(
        self, parent: str, version: str | None = None, namespace: str | None = None
    ) -> list[TagEntry]:
        return child_tags(await self.load(version), parent, namespace)

    async def find_tag(self, name: str, version: str | None = None) -> TagEntry | None:
        return find_tag(await self.load(version), name)

    async def search_tags(self, prefix: str, version: str | None = None) -> list[TagEntry]:
        return search_by_prefix(await self.load(version), prefix)

    async def search_tags_containing(self, text: str, version: str | None = None) -> list[TagEntry]:
        return search_containing(await self.load(version), text)

    async def find_extensible_parents(self, term: str, version: str | None = None) -> list[TagEntry]:
        return find_extensible_parents(await self.load(version), term)


def _locator_to_path(locator: str) -> Path | None:
    if not locator:
        return None
    parsed = urlparse(locator)
    # One-letter schemes are Windows drive letters
    if len(parsed.scheme) > 1:
        if parsed.scheme != "file":
            return None
        return Path(unquote(parsed.path))
    return Path(locator)


def _read_descriptor_version(path: Path) -> str | None:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return None

    value = data.get(DESCRIPTOR_VERSION_FIELD) if isinstance(data, dict) else None
    if isinstance(value, str):
        return normalize_version(value) or None
    if isinstance(value, list):
        return normalize_version([str(v) for v in value if v]) or None
    return None


def _scope(name: str, namespace: str | None) -> tuple[str | None, str]:
    prefix, bare = split_prefix(name)
    return (prefix if prefix is not None else namespace), bare


def top_level_tags(vocabulary: Vocabulary, namespace: str | None = None) -> list[TagEntry]:
    """Tags without a parent."""
    return [tag for tag in vocabulary.entries(namespace) if tag.parent is None]


def child_tags(vocabulary: Vocabulary, parent: str, namespace: str | None = None) -> list[TagEntry]:
    """Tags whose parent equals ``parent`` case-insensitively.

    ``parent`` may be a path ("Item/Object") or carry a namespace prefix
    ("sc:Seizure"), which scopes the lookup to that namespace.
    """
    scope, bare = _scope(parent, namespace)
    target = bare.rstrip("/").split("/")[-1].strip().lower()
    if not target:
        return []
    return [tag for tag in vocabulary.entries(scope) if tag.parent is not None and tag.parent.lower() == target]


def find_tag(vocabulary: Vocabulary, name: str, namespace: str | None = None) -> TagEntry | None:
    """Find a tag by short form, long form or prefixed name."""
    scope, bare = _scope(name.strip(), namespace)
    lowered = bare.lower()
    short = lowered.split("/")[-1]
    for tag in vocabulary.entries(scope):
        if tag.short_form.lower() == short or tag.long_form.lower() == lowered:
            return tag
    return None


def search_by_prefix(vocabulary: Vocabulary, text: str, namespace: str | None = None) -> list[TagEntry]:
    """Tags whose short form starts with ``text`` (case-insensitive)."""
    scope, bare = _scope(text, namespace)
    lowered = bare.lower()
    return [tag for tag in vocabulary.entries(scope) if tag.short_form.lower().startswith(lowered)]


def search_containing(vocabulary: Vocabulary, text: str, namespace: str | None = None) -> list[TagEntry]:
    """Tags whose short form starts with ``text``, then tags that merely contain it.

    Within each group the vocabulary's own iteration order is kept.
    """
    scope, bare = _scope(text, namespace)
    lowered = bare.strip().lower()
    if not lowered:
        return []
    starts: list[TagEntry] = []
    contains: list[TagEntry] = []
    for tag in vocabulary.entries(scope):
        name = tag.short_form.lower()
        if name.startswith(lowered):
            starts.append(tag)
        elif lowered in name:
            contains.append(tag)
    return starts + contains


def find_extensible_parents(
    vocabulary: Vocabulary, term: str, limit: int = MAX_EXTENSIBLE_PARENTS
) -> list[TagEntry]:
    """Rank extension-allowed tags as parents for an unknown term.

    Score = 3 x query words found in the short name + 1 x words found in the
    description. Ties keep vocabulary order.
    """
    words = [w for w in re.split(r"[\s_\-/]+", term.lower()) if w]
    if not words:
        return []

    scored: list[tuple[int, TagEntry]] = []
    for tag in vocabulary.entries():
        if not tag.attributes.extension_allowed:
            continue
        name = tag.short_form.lower()
        description = tag.description.lower()
        score = 3 * sum(1 for w in words if w in name) + sum(1 for w in words if w in description)
        if score > 0:
            scored.append((score, tag))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [tag for _score, tag in scored[:limit]]
