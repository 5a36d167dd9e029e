"""Tests for semantic search, the context manager and the conversation window."""

import pytest
from pydantic import ValidationError

from conftest import FakeEmbeddings, make_entry
from narrative_memory.core.config import Settings
from narrative_memory.core.errors import EmbeddingError, InvalidFilterError, SchemaViolationError, StoreConnectionError
from narrative_memory.domain.models import (
    EmbeddingType,
    MemoryCategory,
    MemoryMetadata,
    MemoryRole,
    Speaker,
)
from narrative_memory.domain.models.memory import COLUMN_TYPES, ColumnType
from narrative_memory.infrastructure.vector.base import CollectionSchema
from narrative_memory.infrastructure.vector.memory_index import InMemoryVectorIndex
from narrative_memory.services.context_manager import ContextManager
from narrative_memory.services.conversation_window import ConversationWindow
from narrative_memory.services.semantic_search import SemanticSearch


def event(**tags) -> MemoryMetadata:
    return MemoryMetadata(category=MemoryCategory.EVENT, **tags)


class DownIndex(InMemoryVectorIndex):
    """Index whose store accepts the schema but drops every row."""

    async def _insert(self, row):
        raise ConnectionError("store is down")


def mistyped_collection(store) -> None:
    """A collection created elsewhere with 'turn' stored as text."""
    store.create(CollectionSchema(name="campaign", dimension=8, columns={**COLUMN_TYPES, "turn": ColumnType.STRING}))


# ── Semantic search ──


class TestSemanticSearch:
    async def test_blank_query_skips_everything(self, index, embeddings):
        search = SemanticSearch(index, embeddings)
        for query in ("", "   ", "\n\t"):
            results = await search.search(query)
            assert results.count == 0
        assert embeddings.calls == []

    async def test_never_written_collection(self, index, embeddings):
        results = await SemanticSearch(index, embeddings).search("where is the ferryman?")
        assert results.hits == []
        assert embeddings.calls == [("where is the ferryman?", EmbeddingType.QUERY)]

    async def test_nearest_memory_comes_first(self, index, embeddings):
        manager = ContextManager(index, embeddings)
        for turn, text in enumerate(["the ferryman wants a silver coin", "rain over the marsh", "a wolf howls"]):
            await manager.add_entry(MemoryRole.SYSTEM, text, turn, event())

        results = await SemanticSearch(index, embeddings).search("rain over the marsh", limit=2)

        assert results.count == 2
        assert results.hits[0].entry.content == "rain over the marsh"
        assert results.hits[0].distance == pytest.approx(0.0, abs=1e-5)

    async def test_default_limit(self, index, embeddings):
        manager = ContextManager(index, embeddings)
        for turn in range(4):
            await manager.add_entry(MemoryRole.SYSTEM, f"fact {turn}", turn, event())
        results = await SemanticSearch(index, embeddings, default_limit=2).search("fact")
        assert results.count == 2

    async def test_filters_are_passed_through(self, index, embeddings):
        manager = ContextManager(index, embeddings)
        await manager.add_entry(MemoryRole.SYSTEM, "the mayor hides a key", 1, event(npc="Mayor"))
        await manager.add_entry(MemoryRole.SYSTEM, "the smith forges a key", 2, event(npc="Smith"))

        results = await SemanticSearch(index, embeddings).search("key", filters={"npc": "Smith"})

        assert [hit.entry.npc for hit in results.hits] == ["Smith"]
        assert results.summaries()[0]["content"] == "the smith forges a key"
        assert "embedding" not in results.summaries()[0]

    async def test_embedding_failure_propagates(self, index):
        search = SemanticSearch(index, FakeEmbeddings(fail_intents={EmbeddingType.QUERY}))
        with pytest.raises(EmbeddingError):
            await search.search("anything")

    async def test_invalid_filter_propagates(self, index, embeddings):
        with pytest.raises(InvalidFilterError):
            await SemanticSearch(index, embeddings).search("anything", filters={"weather": "rain"})


# ── Context manager ──


class TestContextManager:
    async def test_add_entry_embeds_as_document(self, index, embeddings):
        manager = ContextManager(index, embeddings)

        entry = await manager.add_entry(
            MemoryRole.SYSTEM,
            "Ana owes the captain forty coins",
            turn=3,
            metadata=event(npc="Ana", important_fact=True, fact_summary="Ana's debt"),
        )

        assert embeddings.calls == [("Ana owes the captain forty coins", EmbeddingType.DOCUMENT)]
        assert entry.turn == 3
        assert entry.npc == "Ana"
        assert entry.fact_summary == "Ana's debt"
        assert entry.dimension == 8
        assert await index.count() == 1

    async def test_empty_fact_summary_stays_distinct_from_none(self, index, embeddings):
        manager = ContextManager(index, embeddings)
        await manager.add_entry(MemoryRole.SYSTEM, "a", 1, event(fact_summary=""))
        assert await index.count({"fact_summary": ""}) == 1

    async def test_failure_is_logged_and_dropped(self, index):
        manager = ContextManager(index, FakeEmbeddings(fail_intents={EmbeddingType.DOCUMENT}))
        assert await manager.add_entry(MemoryRole.SYSTEM, "lost", 1, event()) is None
        assert await index.count() == 0

    async def test_raise_policy(self, index):
        manager = ContextManager(index, FakeEmbeddings(fail_intents={EmbeddingType.DOCUMENT}), failure_policy="raise")
        with pytest.raises(EmbeddingError):
            await manager.add_entry(MemoryRole.SYSTEM, "lost", 1, event())

    async def test_discarded_entry_returns_none(self, index):
        await index.append(make_entry())
        manager = ContextManager(index, FakeEmbeddings(dimension=3))
        assert await manager.add_entry(MemoryRole.NARRATOR, "too short", 2, event()) is None
        assert await index.count() == 1

    async def test_store_failure_after_embedding_is_dropped(self, store, embeddings):
        manager = ContextManager(DownIndex("campaign", store=store), embeddings)

        assert await manager.add_entry(MemoryRole.NARRATOR, "the bridge collapses", 4, event()) is None
        assert embeddings.calls == [("the bridge collapses", EmbeddingType.DOCUMENT)]
        assert store.collection("campaign").rows == []

    async def test_store_failure_after_embedding_raises_under_raise_policy(self, store, embeddings):
        manager = ContextManager(DownIndex("campaign", store=store), embeddings, failure_policy="raise")

        with pytest.raises(StoreConnectionError, match="unreachable"):
            await manager.add_entry(MemoryRole.NARRATOR, "the bridge collapses", 4, event())

    async def test_schema_violation_is_dropped(self, store, index, embeddings):
        mistyped_collection(store)
        manager = ContextManager(index, embeddings)

        assert await manager.add_entry(MemoryRole.SYSTEM, "the ferry leaves at dawn", 2, event()) is None
        assert await index.count() == 0

    async def test_schema_violation_raises_under_raise_policy(self, store, index, embeddings):
        mistyped_collection(store)
        manager = ContextManager(index, embeddings, failure_policy="raise")

        with pytest.raises(SchemaViolationError, match="turn"):
            await manager.add_entry(MemoryRole.SYSTEM, "the ferry leaves at dawn", 2, event())


# ── Conversation window ──


class TestConversationWindow:
    def test_keeps_only_the_latest_exchange(self):
        window = ConversationWindow(max_exchanges=1)
        for turn in range(1, 4):
            window.record_exchange(f"player {turn}", f"narrator {turn}", turn)

        assert len(window) == 2
        assert [(t.speaker, t.text) for t in window.turns] == [
            (Speaker.PLAYER, "player 3"),
            (Speaker.NARRATOR, "narrator 3"),
        ]

    def test_larger_window(self):
        window = ConversationWindow(max_exchanges=2)
        for turn in range(1, 4):
            window.record_exchange(f"p{turn}", f"n{turn}", turn)
        assert [t.turn for t in window.turns] == [2, 2, 3, 3]

    def test_transcript_roles(self):
        window = ConversationWindow()
        window.record_exchange("I open the door", "It creaks.", 1)
        transcript = window.transcript()
        assert [(m.role, m.text) for m in transcript] == [("user", "I open the door"), ("assistant", "It creaks.")]

    def test_bound_must_be_positive(self):
        with pytest.raises(ValueError):
            ConversationWindow(max_exchanges=0)


class TestSettings:
    def test_collection_name_is_validated(self):
        with pytest.raises(ValidationError):
            Settings(collection_name="1; DROP")

    def test_defaults(self):
        config = Settings(_env_file=None)
        assert config.max_history_exchanges == 1
        assert config.dimension_mismatch_policy == "discard"
        assert config.memory_write_failure_policy == "log"
