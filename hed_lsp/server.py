"""Session context for the HED language service.

HedLanguageService owns everything one editor session needs: settings, the
schema manager, semantic search, the validation pipeline, open documents and
their debounce timers. Transport and protocol handling live in the host; the
host forwards document notifications here and receives diagnostics through the
publisher callback.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from hed_lsp.completion import CompletionEngine
from hed_lsp.config import HedLspSettings, normalize_keys
from hed_lsp.definitions import provide_definition
from hed_lsp.document.types import TextDocument
from hed_lsp.errors import SchemaLoadError
from hed_lsp.hover import provide_hover
from hed_lsp.schema.manager import SchemaManager
from hed_lsp.utils.semantic_search import SemanticSearchManager
from hed_lsp.validation import IssueMapper, get_validator

if TYPE_CHECKING:
    from hed_lsp.completion import CompletionCandidate
    from hed_lsp.definitions import Location
    from hed_lsp.document.types import Position
    from hed_lsp.hover import Hover
    from hed_lsp.schema.manager import SchemaBuilder
    from hed_lsp.utils.semantic_search import EmbeddingProvider
    from hed_lsp.validation.validation_types import Diagnostic, HedValidatorBackend

logger = logging.getLogger(__name__)

Publisher = Callable[[str, list["Diagnostic"]], Awaitable[None] | None]


class HedLanguageService:
    """One editor session.

    Example:
        >>> service = HedLanguageService(publisher=send_diagnostics)
        >>> await service.did_open("file:///data/task-rest_events.json", text)
        >>> items = await service.completions(uri, Position(3, 18))
    """

    def __init__(
        self,
        settings: HedLspSettings | None = None,
        publisher: Publisher | None = None,
        schema_builder: SchemaBuilder | None = None,
        validator: HedValidatorBackend | None = None,
        provider_factory: Callable[[], EmbeddingProvider] | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            settings: Session settings (defaults if None)
            publisher: Receives ``(uri, diagnostics)`` after each validation
            schema_builder: Vocabulary builder (defaults to hedtools)
            validator: Validator backend (defaults to ``settings.validator_backend``)
            provider_factory: Embedding provider factory (defaults to sentence-transformers)
        """
        self.settings = settings or HedLspSettings()
        self.publisher = publisher
        self._validator_override = validator

        self.schema_manager = SchemaManager(
            builder=schema_builder,
            default_version=self.settings.schema_version,
            search_depth=self.settings.descriptor_search_depth,
        )
        self.semantic_search = SemanticSearchManager(
            model_id=self.settings.model_id,
            embeddings_path=self._embeddings_path(),
            provider_factory=provider_factory,
            enabled=self.settings.enable_semantic_search,
        )
        self.issue_mapper = IssueMapper(self.schema_manager, self._make_validator())
        self.completion_engine = CompletionEngine(self.schema_manager, self.semantic_search)

        self.documents: dict[str, TextDocument] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._generations: dict[str, int] = {}
        self._tasks: set[asyncio.Task] = set()
        self._embeddings_attempted = False

    def _embeddings_path(self) -> Path | None:
        return Path(self.settings.embeddings_path) if self.settings.embeddings_path else None

    def _make_validator(self) -> HedValidatorBackend:
        if self._validator_override is not None:
            return self._validator_override
        return get_validator(self.settings.validator_backend)

    def _store(self, uri: str, text: str, version: int) -> TextDocument:
        document = TextDocument(uri, text, version)
        self.documents[uri] = document
        self._generations[uri] = self._generations.get(uri, 0) + 1
        return document

    async def did_open(self, uri: str, text: str, version: int = 0) -> list[Diagnostic]:
        """Track a newly opened document and validate it."""
        self._store(uri, text, version)
        return await self.validate_now(uri)

    def did_change(self, uri: str, text: str, version: int = 0) -> None:
        """Replace a document's text and (re)start its debounce timer."""
        self._store(uri, text, version)
        if self.settings.validate_on_change:
            self._schedule(uri)

    async def did_save(self, uri: str, text: str | None = None) -> list[Diagnostic]:
        """Validate immediately, superseding any pending debounced run."""
        self._cancel_timer(uri)
        if text is not None:
            current = self.documents.get(uri)
            self._store(uri, text, current.version if current else 0)
        return await self.validate_now(uri)

    async def did_close(self, uri: str) -> None:
        """Stop tracking a document and clear its diagnostics."""
        self._cancel_timer(uri)
        self.documents.pop(uri, None)
        self._generations.pop(uri, None)
        self.schema_manager.invalidate_detected_version(uri)
        await self._publish(uri, [])

    def _schedule(self, uri: str) -> None:
        self._cancel_timer(uri)
        loop = asyncio.get_running_loop()
        self._timers[uri] = loop.call_later(self.settings.debounce_seconds, self._fire, uri)

    def _cancel_timer(self, uri: str) -> None:
        handle = self._timers.pop(uri, None)
        if handle is not None:
            handle.cancel()

    def _fire(self, uri: str) -> None:
        self._timers.pop(uri, None)
        task = asyncio.ensure_future(self.validate_now(uri))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def has_pending_validation(self, uri: str) -> bool:
        return uri in self._timers

    async def wait_idle(self) -> None:
        """Wait until running validations finish (timers still pending are not awaited)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def version_for(self, uri: str) -> str:
        """Schema version for a document: descriptor version, else the configured one."""
        detected = await self.schema_manager.detect_version_for_document(uri)
        return detected or self.settings.schema_version

    async def validate_now(self, uri: str) -> list[Diagnostic]:
        """Validate the current snapshot of a document and publish the result.

        Results are not published when the document changed while the
        validation was running; the newer snapshot has its own run.

        Returns:
            Diagnostics, capped at ``max_number_of_problems``
        """
        document = self.documents.get(uri)
        if document is None:
            return []
        generation = self._generations.get(uri)

        version = await self.version_for(uri)
        diagnostics = await self.issue_mapper.validate_document(document, version=version)
        diagnostics = diagnostics[: self.settings.max_number_of_problems]

        if self._generations.get(uri) != generation:
            logger.debug(f"Discarding stale diagnostics for {uri}")
            return diagnostics
        await self._publish(uri, diagnostics)
        return diagnostics

    async def _publish(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        if self.publisher is None:
            return
        result = self.publisher(uri, diagnostics)
        if inspect.isawaitable(result):
            await result

    async def _prepare_semantic(self, version: str) -> None:
        """Make vectors available to semantic search for this version."""
        if not self.settings.enable_semantic_search:
            return
        if self.settings.embeddings_path and not self._embeddings_attempted:
            self._embeddings_attempted = True
            self.semantic_search.load_embeddings()
        try:
            vocabulary = await self.schema_manager.load(version)
        except SchemaLoadError as e:
            logger.debug(f"Semantic search not indexed: {e}")
            return
        self.semantic_search.index_vocabulary(vocabulary)

    async def completions(self, uri: str, position: Position) -> list[CompletionCandidate]:
        document = self.documents.get(uri)
        if document is None:
            return []
        version = await self.version_for(uri)
        await self._prepare_semantic(version)
        return await self.completion_engine.provide_completions(document, position, version)

    async def hover(self, uri: str, position: Position) -> Hover | None:
        document = self.documents.get(uri)
        if document is None:
            return None
        version = await self.version_for(uri)
        return await provide_hover(document, position, self.schema_manager, version)

    def definition(self, uri: str, position: Position) -> Location | None:
        document = self.documents.get(uri)
        if document is None:
            return None
        return provide_definition(document, position)

    async def update_settings(self, changes: dict[str, Any] | HedLspSettings) -> HedLspSettings:
        """Apply new settings, reset caches and revalidate open documents.

        Args:
            changes: Full settings or a partial mapping (camelCase or snake_case)

        Raises:
            pydantic.ValidationError: If a value is invalid
        """
        if isinstance(changes, HedLspSettings):
            settings = changes
        else:
            settings = HedLspSettings.model_validate({**self.settings.model_dump(), **normalize_keys(changes)})
        previous = self.settings
        self.settings = settings

        self.schema_manager.clear_cache()
        self.schema_manager.set_current_version(settings.schema_version)
        self.schema_manager.search_depth = settings.descriptor_search_depth

        self.semantic_search.clear_cache()
        self.semantic_search.model_id = settings.model_id
        self.semantic_search.embeddings_path = self._embeddings_path()
        self.semantic_search.set_enabled(settings.enable_semantic_search)
        self._embeddings_attempted = False

        if settings.validator_backend != previous.validator_backend:
            self.issue_mapper.validator = self._make_validator()

        logger.info(f"Settings updated (schema {settings.schema_version}); revalidating {len(self.documents)} documents")
        for uri in list(self.documents):
            self._cancel_timer(uri)
            await self.validate_now(uri)
        return settings

    def shutdown(self) -> None:
        """Cancel pending timers and running validations."""
        for uri in list(self._timers):
            self._cancel_timer(uri)
        for task in list(self._tasks):
            task.cancel()
