"""Tests for semantic search module."""

import asyncio
import json

import pytest

from hed_lsp.utils.keyword_index import KEYWORD_INDEX
from hed_lsp.utils.semantic_search import (
    KEYWORD_MATCH_SCORE,
    MAX_INFERRED_SCORE,
    SemanticSearchManager,
    TagMatch,
    combine_scores,
)


class TestKeywordIndex:
    """Tests for the KEYWORD_INDEX deterministic lookup."""

    def test_keyword_index_not_empty(self):
        """Keyword index should have entries."""
        assert len(KEYWORD_INDEX) > 0

    def test_keyword_index_has_common_terms(self):
        """Keyword index should include common neuroscience terms."""
        for term in ("mouse", "reward", "seizure", "stimulus", "marmoset"):
            assert term in KEYWORD_INDEX

    def test_keyword_index_values_are_lists(self):
        """Each keyword should map to a non-empty list of HED tags."""
        for keyword, tags in KEYWORD_INDEX.items():
            assert isinstance(tags, list), f"'{keyword}' should map to a list"
            assert len(tags) > 0, f"'{keyword}' should have at least one tag"

    def test_keyword_index_library_prefixes(self):
        """Library schemas should have proper prefixes."""
        assert any(tag.startswith("sc:") for tag in KEYWORD_INDEX["seizure"])


class TestFindByKeyword:
    """Tests for deterministic keyword hits."""

    @pytest.fixture
    def manager(self, fake_provider):
        return SemanticSearchManager(
            provider_factory=lambda: fake_provider,
            keyword_index={"marmoset": ["Animal", "Animal-agent"], "seizure": ["sc:Seizure"]},
        )

    @pytest.mark.asyncio
    async def test_marmoset(self, manager, fake_provider):
        """A keyword hit returns its targets in order at 0.95 without the model."""
        results = await manager.find_similar("marmoset")

        assert [r.prefixed_tag for r in results] == ["Animal", "Animal-agent"]
        assert all(r.score == KEYWORD_MATCH_SCORE for r in results)
        assert all(r.source == "keyword" for r in results)
        assert fake_provider.calls == 0
        assert manager.get_stats()["model_loaded"] is False

    def test_case_and_whitespace(self, manager):
        assert [r.tag for r in manager.find_by_keyword("  Marmoset ")] == ["Animal", "Animal-agent"]

    def test_library_prefix_split(self, manager):
        (match,) = manager.find_by_keyword("seizure")
        assert (match.prefix, match.tag, match.prefixed_tag) == ("sc:", "Seizure", "sc:Seizure")

    def test_unknown_keyword(self, manager):
        assert manager.find_by_keyword("unicorn") == []

    @pytest.mark.asyncio
    async def test_keyword_hit_when_disabled(self, fake_provider):
        """Disabling the embedding tier keeps the keyword index working."""
        manager = SemanticSearchManager(
            provider_factory=lambda: fake_provider, enabled=False, keyword_index={"marmoset": ["Animal"]}
        )
        assert [r.tag for r in await manager.find_similar("marmoset")] == ["Animal"]
        assert await manager.find_similar("rat") == []
        assert fake_provider.calls == 0


class TestEmbeddingSearch:
    """Tests for the embedding tier with a fake provider."""

    @pytest.fixture
    def manager(self, fake_provider, vocabulary):
        manager = SemanticSearchManager(
            provider_factory=lambda: fake_provider,
            keyword_index={"rodent": ["Animal"], "button": ["Press"]},
        )
        manager.index_vocabulary(vocabulary)
        return manager

    @pytest.mark.asyncio
    async def test_agreement_is_boosted(self, manager):
        """A tag found by keyword vote and directly ranks first, capped below 0.95."""
        results = await manager.find_similar("rat")

        assert results[0].prefixed_tag == "Animal"
        assert results[0].source == "both"
        assert results[0].score == pytest.approx(MAX_INFERRED_SCORE)
        assert all(r.score < KEYWORD_MATCH_SCORE for r in results)

    @pytest.mark.asyncio
    async def test_direct_only_matches(self, manager):
        """Tags matched only directly are reported as embedding matches."""
        results = await manager.find_similar("rat")
        sources = {r.prefixed_tag: r.source for r in results}
        assert sources["Animal-agent"] == "embedding"

    @pytest.mark.asyncio
    async def test_nothing_above_threshold(self, manager):
        """No keyword or tag lies near the query."""
        assert await manager.find_similar("sound") == []

    @pytest.mark.asyncio
    async def test_top_k(self, manager):
        assert len(await manager.find_similar("rat", top_k=1)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_queries_load_model_once(self, fake_provider, vocabulary):
        """Concurrent first queries share one model load."""
        loads = 0

        def factory():
            nonlocal loads
            loads += 1
            return fake_provider

        manager = SemanticSearchManager(provider_factory=factory, keyword_index={"rodent": ["Animal"]})
        manager.index_vocabulary(vocabulary)
        await asyncio.gather(*(manager.find_similar(q) for q in ("rat", "push", "animal things")))

        assert loads == 1
        assert manager.is_available()

    @pytest.mark.asyncio
    async def test_model_failure_disables_embedding_tier(self, vocabulary):
        """A failed model load disables only the embedding tier."""
        attempts = 0

        def factory():
            nonlocal attempts
            attempts += 1
            raise OSError("model not found")

        manager = SemanticSearchManager(provider_factory=factory, keyword_index={"marmoset": ["Animal"]})
        manager.index_vocabulary(vocabulary)

        assert await manager.find_similar("rat") == []
        assert await manager.find_similar("rat") == []
        assert attempts == 1
        assert manager.get_stats()["model_failed"] is True
        assert [r.tag for r in await manager.find_similar("marmoset")] == ["Animal"]

    @pytest.mark.asyncio
    async def test_clear_cache_resets(self, manager):
        await manager.find_similar("rat")
        assert manager.get_stats()["tag_embeddings"] > 0
        manager.clear_cache()
        stats = manager.get_stats()
        assert stats["tag_embeddings"] == 0
        assert stats["model_loaded"] is False


class TestCombineScores:
    """Tests for evidence combination."""

    def test_agreement_never_lowers_score(self):
        """Adding direct evidence never decreases the combined score."""
        for max_sim in (0.6, 0.7, 0.8, 0.9, 1.0):
            for votes in (1, 2, 5):
                without = combine_scores(max_sim, votes)
                for direct in (0.5, 0.7, 0.9):
                    assert combine_scores(max_sim, votes, direct) >= without

    def test_more_votes_score_higher(self):
        assert combine_scores(0.6, 3) > combine_scores(0.6, 1)

    def test_capped(self):
        assert combine_scores(1.0, 10, 1.0) == MAX_INFERRED_SCORE

    def test_single_vote_value(self):
        """One vote at similarity 0.6 gives 0.6 * (1 + ln 2 * 0.2)."""
        assert combine_scores(0.6, 1) == pytest.approx(0.6 * (1 + 0.6931471805599453 * 0.2))


class TestLoadEmbeddings:
    """Tests for loading a precomputed vector store."""

    def write_store(self, path, kind, entries):
        path.write_text(json.dumps({"type": kind, "dimensions": 4, "embeddings": entries}))

    @pytest.mark.asyncio
    async def test_directory_of_files(self, tmp_path, fake_provider):
        """All embeddings-*.json files in a directory are loaded."""
        self.write_store(
            tmp_path / "embeddings-tags.json",
            "tags",
            [{"tag": "Animal", "long_form": "Item/Biological-item/Organism/Animal", "prefix": "", "vector": [1, 0, 0, 0]}],
        )
        self.write_store(
            tmp_path / "embeddings-keywords.json",
            "keywords",
            [{"keyword": "rodent", "targets": ["Animal"], "vector": [1, 0, 0, 0]}],
        )
        (tmp_path / "notes.json").write_text("{}")

        manager = SemanticSearchManager(
            provider_factory=lambda: fake_provider, embeddings_path=tmp_path, keyword_index={}
        )
        assert manager.load_embeddings() is True

        stats = manager.get_stats()
        assert stats["tag_embeddings"] == 1
        assert stats["keyword_embeddings"] == 1
        assert sorted(stats["loaded_files"]) == ["embeddings-keywords.json", "embeddings-tags.json"]

        (match,) = await manager.find_similar("rat")
        assert match.long_form == "Item/Biological-item/Organism/Animal"
        assert match.source == "both"

    def test_missing_path(self, tmp_path):
        manager = SemanticSearchManager(embeddings_path=tmp_path / "missing.json")
        assert manager.load_embeddings() is False

    def test_corrupt_file(self, tmp_path):
        store = tmp_path / "embeddings-bad.json"
        store.write_text("{not json")
        assert SemanticSearchManager().load_embeddings(store) is False


def test_tag_match_repr():
    match = TagMatch(tag="Seizure", long_form="Seizure", prefix="sc:", score=0.95, source="keyword")
    assert "sc:Seizure" in repr(match)
