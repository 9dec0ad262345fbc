"""Semantic search for HED tags using embeddings and keyword matching.

This module finds relevant HED tags for free-text queries with a dual approach:
1. Deterministic keyword index for exact/known term matches
2. Embedding-based search over keyword anchors and tag vectors, where tags
   found through both get their confidence boosted
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Protocol

import numpy as np

from hed_lsp.errors import ModelLoadError
from hed_lsp.schema.types import split_prefix
from hed_lsp.utils.keyword_index import KEYWORD_INDEX

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

    from hed_lsp.schema.types import Vocabulary

logger = logging.getLogger(__name__)

# Default embedding model
DEFAULT_MODEL_ID = "Qwen/Qwen3-Embedding-0.6B"

KEYWORD_MATCH_SCORE = 0.95
# Inferred scores stay strictly below a deterministic keyword hit
MAX_INFERRED_SCORE = 0.94

KEYWORD_THRESHOLD = 0.6
TAG_THRESHOLD = 0.5
TOP_KEYWORDS = 10
VOTE_FACTOR = 0.2
AGREEMENT_BOOST = 1.5
DIRECT_WEIGHT = 0.3

EMBED_BATCH_SIZE = 64


@dataclass
class TagMatch:
    """A matched HED tag with relevance score."""

    tag: str
    long_form: str
    prefix: str  # "" for base schema, "sc:" for SCORE, etc.
    score: float
    source: Literal["keyword", "embedding", "both"]

    @property
    def prefixed_tag(self) -> str:
        return f"{self.prefix}{self.tag}"

    def __repr__(self) -> str:
        return f"TagMatch({self.prefixed_tag}, score={self.score:.2f}, source={self.source})"


@dataclass
class TagEmbedding:
    """Embedding entry for a HED tag."""

    tag: str
    long_form: str
    prefix: str
    vector: list[float] = field(repr=False)


@dataclass
class KeywordEmbedding:
    """Embedding entry for a curated keyword (anchor)."""

    keyword: str
    targets: list[str]  # HED tags this keyword points to
    vector: list[float] = field(repr=False)


class EmbeddingProvider(Protocol):
    """Model inference: texts in, one unit-normalized vector per text out."""

    def embed(self, texts: list[str]) -> np.ndarray: ...


class SentenceTransformerProvider:
    """Embedding provider backed by sentence-transformers."""

    def __init__(self, model_id: str = DEFAULT_MODEL_ID) -> None:
        from sentence_transformers import SentenceTransformer

        logger.info(f"Loading embedding model: {model_id}")
        self.model_id = model_id
        self.model: SentenceTransformer = SentenceTransformer(model_id)
        logger.info("Embedding model loaded successfully")

    def embed(self, texts: list[str]) -> np.ndarray:
        return np.asarray(
            self.model.encode([t.lower() for t in texts], normalize_embeddings=True),
            dtype=np.float32,
        )


def _normalize_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


def _tag_key(prefix: str, tag: str) -> str:
    return f"{prefix}{tag}".lower()


def _tag_text(tag: str, description: str) -> str:
    text = tag.replace("-", " ")
    return f"{text}: {description}" if description else text


class SemanticSearchManager:
    """Semantic search for HED tags over keyword anchors and tag embeddings.

    One instance per session. The embedding model is created lazily by
    ``provider_factory`` the first time a query needs it; concurrent callers
    share that single load. If the load fails the embedding tier is disabled
    and only the deterministic keyword index answers.
    """

    def __init__(
        self,
        model_id: str = DEFAULT_MODEL_ID,
        embeddings_path: Path | None = None,
        provider_factory: Callable[[], EmbeddingProvider] | None = None,
        enabled: bool = True,
        keyword_index: dict[str, list[str]] | None = None,
    ) -> None:
        """Initialize the semantic search manager.

        Args:
            model_id: HuggingFace model ID for embeddings
            embeddings_path: Path to embeddings file, directory, or None
                - If file: loads that single file
                - If directory: loads all embeddings-*.json files
            provider_factory: Builds the embedding provider (defaults to
                ``SentenceTransformerProvider(model_id)``)
            enabled: Whether the embedding tier may be used
            keyword_index: Curated keyword -> target tags (defaults to KEYWORD_INDEX)
        """
        self.model_id = model_id
        self.embeddings_path = embeddings_path
        self.enabled = enabled
        self.keyword_index = keyword_index if keyword_index is not None else KEYWORD_INDEX
        self._provider_factory = provider_factory or (lambda: SentenceTransformerProvider(self.model_id))
        self._provider: EmbeddingProvider | None = None
        self._provider_task: asyncio.Task[EmbeddingProvider] | None = None
        self._model_failed = False

        self._tag_embeddings: dict[str, TagEmbedding] = {}
        self._keyword_embeddings: list[KeywordEmbedding] = []
        self._tag_matrix: np.ndarray | None = None
        self._keyword_matrix: np.ndarray | None = None
        self._pending_vocabulary: Vocabulary | None = None
        self._embeddings_loaded = False
        self._dimensions = 1024  # Qwen3-Embedding default
        self._loaded_files: list[str] = []

    async def _get_provider(self) -> EmbeddingProvider | None:
        """Lazily create the embedding provider; None when the tier is unavailable."""
        if not self.enabled or self._model_failed:
            return None
        if self._provider is not None:
            return self._provider

        if self._provider_task is None:
            self._provider_task = asyncio.ensure_future(self._load_provider())
        task = self._provider_task
        try:
            self._provider = await asyncio.shield(task)
        except ModelLoadError as e:
            if not self._model_failed:
                logger.warning(f"Semantic search disabled: {e}")
            self._model_failed = True
            return None
        finally:
            if task.done() and self._provider_task is task:
                self._provider_task = None
        return self._provider

    async def _load_provider(self) -> EmbeddingProvider:
        try:
            return await asyncio.to_thread(self._provider_factory)
        except Exception as e:
            raise ModelLoadError(f"Failed to load embedding model {self.model_id}: {e}") from e

    async def embed_batch(self, texts: list[str]) -> np.ndarray | None:
        """Embed texts in batches; None if the model is unavailable or fails."""
        provider = await self._get_provider()
        if provider is None or not texts:
            return None
        chunks = []
        try:
            for start in range(0, len(texts), EMBED_BATCH_SIZE):
                batch = texts[start : start + EMBED_BATCH_SIZE]
                chunks.append(np.asarray(await asyncio.to_thread(provider.embed, batch), dtype=np.float32))
        except Exception as e:
            logger.warning(f"Embedding call failed: {e}")
            return None
        return _normalize_rows(np.vstack(chunks))

    async def embed(self, text: str) -> np.ndarray | None:
        """Generate a normalized embedding for a single text."""
        vectors = await self.embed_batch([text.lower().strip()])
        return None if vectors is None else vectors[0]

    def _load_single_file(self, file_path: Path) -> bool:
        """Load embeddings from a single file.

        Args:
            file_path: Path to embeddings JSON file

        Returns:
            True if loaded successfully
        """
        try:
            with open(file_path, encoding="utf-8") as f:
                data = json.load(f)

            entries = data.get("embeddings", data.get("tags", []))
            if data.get("type", "tags") == "keywords":
                for entry in entries:
                    self._keyword_embeddings.append(
                        KeywordEmbedding(keyword=entry["keyword"], targets=entry["targets"], vector=entry["vector"])
                    )
                logger.debug(f"Loaded {len(entries)} keywords from {file_path.name}")
            else:
                for entry in entries:
                    prefix = entry.get("prefix", "")
                    self._tag_embeddings[_tag_key(prefix, entry["tag"])] = TagEmbedding(
                        tag=entry["tag"],
                        long_form=entry.get("long_form", entry.get("longForm", entry["tag"])),
                        prefix=prefix,
                        vector=entry["vector"],
                    )
                logger.debug(f"Loaded {len(entries)} tags from {file_path.name}")

            self._dimensions = data.get("dimensions", self._dimensions)
            self._loaded_files.append(file_path.name)
            return True

        except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.error(f"Failed to load {file_path}: {e}")
            return False

    def load_embeddings(self, path: Path | None = None) -> bool:
        """Load pre-computed embeddings from file(s).

        Args:
            path: Path to embeddings file or directory (overrides constructor path)

        Returns:
            True if any embeddings loaded successfully
        """
        embeddings_path = Path(path) if path is not None else self.embeddings_path
        if embeddings_path is None:
            logger.warning("No embeddings path specified")
            return False

        if not embeddings_path.exists():
            logger.warning(f"Embeddings path not found: {embeddings_path}")
            return False

        if embeddings_path.is_dir():
            files_to_load = sorted(embeddings_path.glob("embeddings-*.json"))
            if not files_to_load:
                logger.warning(f"No embeddings-*.json files found in {embeddings_path}")
                return False
        else:
            files_to_load = [embeddings_path]

        success_count = sum(1 for file_path in files_to_load if self._load_single_file(file_path))
        if success_count == 0:
            return False

        self._rebuild_matrices()
        self._embeddings_loaded = True
        logger.info(
            f"Loaded {len(self._tag_embeddings)} tag embeddings and "
            f"{len(self._keyword_embeddings)} keyword embeddings from {success_count} file(s)"
        )
        return True

    def index_vocabulary(self, vocabulary: Vocabulary) -> None:
        """Register a vocabulary whose tag vectors are generated on first search."""
        if not self._tag_embeddings:
            self._pending_vocabulary = vocabulary

    def _rebuild_matrices(self) -> None:
        if self._tag_embeddings:
            matrix = np.array([e.vector for e in self._tag_embeddings.values()], dtype=np.float32)
            self._tag_matrix = _normalize_rows(matrix)
            self._dimensions = matrix.shape[1]
        else:
            self._tag_matrix = None
        if self._keyword_embeddings:
            matrix = np.array([k.vector for k in self._keyword_embeddings], dtype=np.float32)
            self._keyword_matrix = _normalize_rows(matrix)
        else:
            self._keyword_matrix = None

    async def _ensure_vectors(self) -> None:
        """Generate keyword and tag vectors lazily when none were loaded."""
        changed = False

        if not self._keyword_embeddings and self.keyword_index:
            keywords = list(self.keyword_index)
            vectors = await self.embed_batch(keywords)
            if vectors is not None:
                self._keyword_embeddings = [
                    KeywordEmbedding(keyword=k, targets=list(self.keyword_index[k]), vector=v.tolist())
                    for k, v in zip(keywords, vectors)
                ]
                changed = True

        vocabulary = self._pending_vocabulary
        if vocabulary is not None and not self._tag_embeddings:
            tags = list(vocabulary.entries())
            vectors = await self.embed_batch([_tag_text(t.short_form, t.description) for t in tags])
            if vectors is not None:
                for tag, vector in zip(tags, vectors):
                    self._tag_embeddings[_tag_key(tag.prefix, tag.short_form)] = TagEmbedding(
                        tag=tag.short_form, long_form=tag.long_form, prefix=tag.prefix, vector=vector.tolist()
                    )
                self._pending_vocabulary = None
                changed = True
                logger.info(f"Generated {len(tags)} tag embeddings for {vocabulary.version}")

        if changed:
            self._rebuild_matrices()
            self._embeddings_loaded = True

    def find_by_keyword(self, query: str) -> list[TagMatch]:
        """Find tags matching a keyword from the deterministic index.

        Never calls the embedding model.

        Args:
            query: Keyword to look up

        Returns:
            Matching tags in listed order, all at 0.95
        """
        matching_tags = self.keyword_index.get(query.lower().strip())
        if not matching_tags:
            return []

        results = []
        for tag_name in matching_tags:
            prefix, tag = split_prefix(tag_name)
            results.append(
                TagMatch(
                    tag=tag,
                    long_form=self._long_form(prefix or "", tag),
                    prefix=prefix or "",
                    score=KEYWORD_MATCH_SCORE,
                    source="keyword",
                )
            )
        return results

    def _long_form(self, prefix: str, tag: str) -> str:
        entry = self._tag_embeddings.get(_tag_key(prefix, tag))
        return entry.long_form if entry is not None else tag

    async def find_similar(self, query: str, top_k: int = 10) -> list[TagMatch]:
        """Find semantically similar tags for a free-text query.

        Algorithm:
        1. Keyword index hit -> return it immediately, no model call
        2. Search keyword embeddings to collect votes for target tags
        3. Search tag embeddings directly
        4. Combine evidence; tags found both ways get boosted

        Args:
            query: Free-text query
            top_k: Maximum number of results to return

        Returns:
            Matched tags sorted by score (empty if the embedding tier is unavailable)
        """
        deterministic = self.find_by_keyword(query)
        if deterministic:
            return deterministic[:top_k]

        if not query.strip() or not self.enabled or self._model_failed:
            return []

        await self._ensure_vectors()
        query_vector = await self.embed(query)
        if query_vector is None:
            return []

        # tag -> (votes, max similarity)
        tag_votes: dict[str, tuple[int, float]] = {}
        if self._keyword_matrix is not None:
            similarities = self._keyword_matrix @ query_vector
            ranked = [
                (self._keyword_embeddings[i], float(similarities[i]))
                for i in np.argsort(-similarities, kind="stable")
                if similarities[i] >= KEYWORD_THRESHOLD
            ]
            for keyword, sim in ranked[:TOP_KEYWORDS]:
                for target in keyword.targets:
                    votes, max_sim = tag_votes.get(target, (0, 0.0))
                    tag_votes[target] = (votes + 1, max(max_sim, sim))

        direct_matches: dict[str, tuple[TagEmbedding, float]] = {}
        if self._tag_matrix is not None:
            similarities = self._tag_matrix @ query_vector
            for entry, sim in zip(self._tag_embeddings.values(), similarities):
                if sim >= TAG_THRESHOLD:
                    direct_matches[_tag_key(entry.prefix, entry.tag)] = (entry, float(sim))

        combined: dict[str, TagMatch] = {}
        for target, (votes, max_sim) in tag_votes.items():
            prefix, tag = split_prefix(target)
            prefix = prefix or ""
            key = _tag_key(prefix, tag)
            direct_sim = direct_matches[key][1] if key in direct_matches else 0.0
            combined[key] = TagMatch(
                tag=tag,
                long_form=self._long_form(prefix, tag),
                prefix=prefix,
                score=combine_scores(max_sim, votes, direct_sim),
                source="both" if direct_sim > 0 else "embedding",
            )

        for key, (entry, sim) in direct_matches.items():
            if key not in combined:
                combined[key] = TagMatch(
                    tag=entry.tag,
                    long_form=entry.long_form,
                    prefix=entry.prefix,
                    score=min(sim, MAX_INFERRED_SCORE),
                    source="embedding",
                )

        results = sorted(combined.values(), key=lambda m: m.score, reverse=True)
        return results[:top_k]

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        if enabled:
            self._model_failed = False

    def is_available(self) -> bool:
        """Check if the embedding tier can answer (model loaded or embeddings present)."""
        return self.enabled and not self._model_failed and (self._provider is not None or self._embeddings_loaded)

    def clear_cache(self) -> None:
        """Drop loaded/generated vectors and the model so the next search starts fresh."""
        self._tag_embeddings.clear()
        self._keyword_embeddings.clear()
        self._tag_matrix = None
        self._keyword_matrix = None
        self._pending_vocabulary = None
        self._embeddings_loaded = False
        self._loaded_files.clear()
        self._provider = None
        self._provider_task = None
        self._model_failed = False

    def get_stats(self) -> dict:
        """Get statistics about loaded embeddings."""
        return {
            "tag_embeddings": len(self._tag_embeddings),
            "keyword_embeddings": len(self._keyword_embeddings),
            "keyword_index_size": len(self.keyword_index),
            "dimensions": self._dimensions,
            "model_id": self.model_id,
            "model_loaded": self._provider is not None,
            "model_failed": self._model_failed,
            "enabled": self.enabled,
            "embeddings_loaded": self._embeddings_loaded,
            "loaded_files": list(self._loaded_files),
        }


def combine_scores(max_keyword_similarity: float, votes: int, direct_similarity: float = 0.0) -> float:
    """Evidence combination for a tag that received keyword votes.

    ``kw = max_sim * (1 + ln(votes + 1) * 0.2)``; the result is
    ``kw * 1.5 + direct * 0.3`` when the tag also cleared the direct threshold,
    else ``kw``. Capped at 0.94.
    """
    keyword_score = max_keyword_similarity * (1 + math.log(votes + 1) * VOTE_FACTOR)
    boost = AGREEMENT_BOOST if direct_similarity > 0 else 1.0
    return min(keyword_score * boost + direct_similarity * DIRECT_WEIGHT, MAX_INFERRED_SCORE)
