"""Tests for the vector index state machine, using the in-memory engine."""

import asyncio

import numpy as np
import pytest

from conftest import make_entry, unit
from narrative_memory.core.config import Settings
from narrative_memory.core.errors import (
    DimensionMismatchError,
    InvalidFilterError,
    SchemaViolationError,
    SearchError,
    StoreConnectionError,
)
from narrative_memory.domain.models import COLUMN_TYPES, MemoryCategory
from narrative_memory.infrastructure.vector.base import AppendOutcome, CollectionSchema, CollectionState
from narrative_memory.infrastructure.vector.factory import create_vector_index
from narrative_memory.infrastructure.vector.memory_index import InMemoryVectorIndex, cosine_distances
from narrative_memory.infrastructure.vector.neo4j_index import Neo4jVectorIndex


class UnreachableIndex(InMemoryVectorIndex):
    """Index whose backing store drops every read and write."""

    async def _insert(self, row):
        raise ConnectionError("store is down")

    async def _query(self, vector, limit, predicates):
        raise OSError("store is down")


class SlowIndex(InMemoryVectorIndex):
    async def _query(self, vector, limit, predicates):
        await asyncio.sleep(1)
        return []


# ── Collection lifecycle ──


class TestCollectionLifecycle:
    async def test_new_collection_is_not_created(self, index):
        assert await index.open() is CollectionState.NOT_CREATED
        assert await index.search(unit(0), limit=5) == []
        assert await index.count() == 0

    async def test_first_append_creates_collection(self, index, store):
        assert await index.append(make_entry(embedding=unit(1))) is AppendOutcome.APPENDED
        assert index.state is CollectionState.CREATED
        assert index.schema.dimension == 8
        assert store.creations["campaign"] == 1

    async def test_reopening_loads_existing_schema(self, index, store):
        await index.append(make_entry())
        reopened = InMemoryVectorIndex("campaign", store=store)
        assert await reopened.open() is CollectionState.CREATED
        assert reopened.schema.dimension == 8

    async def test_search_sees_collection_created_by_another_index(self, store):
        reader = InMemoryVectorIndex("campaign", store=store)
        await reader.open()
        writer = InMemoryVectorIndex("campaign", store=store)
        await writer.append(make_entry(embedding=unit(2)))

        hits = await reader.search(unit(2), limit=1)
        assert len(hits) == 1

    async def test_stats(self, index):
        await index.append(make_entry())
        stats = await index.stats()
        assert stats == {
            "collection": "campaign",
            "engine": "memory",
            "state": "created",
            "dimension": 8,
            "count": 1,
        }


# ── Append ──


class TestAppend:
    async def test_row_has_every_column_even_when_unset(self, index, store):
        await index.append(make_entry())
        [row] = store.collection("campaign").rows
        assert set(row) == set(COLUMN_TYPES)
        assert row["npc"] is None
        assert row["fact_summary"] is None
        assert row["present_characters"] == "[]"

    async def test_mismatched_dimension_is_discarded(self, index):
        await index.append(make_entry(embedding=unit(0)))
        outcome = await index.append(make_entry(embedding=[1.0, 0.0, 0.0]))
        assert outcome is AppendOutcome.DISCARDED
        assert await index.count() == 1

    async def test_empty_embedding_does_not_create_collection(self, index):
        assert await index.append(make_entry(embedding=[])) is AppendOutcome.DISCARDED
        assert index.state is CollectionState.NOT_CREATED

    async def test_raise_policy(self, store):
        strict = InMemoryVectorIndex("campaign", store=store, dimension_mismatch_policy="raise")
        await strict.append(make_entry(embedding=unit(0)))
        with pytest.raises(DimensionMismatchError) as excinfo:
            await strict.append(make_entry(embedding=[1.0, 2.0]))
        assert excinfo.value.expected == 8
        assert excinfo.value.actual == 2
        assert await strict.count() == 1

    async def test_store_failure(self, store):
        broken = UnreachableIndex("campaign", store=store)
        with pytest.raises(StoreConnectionError):
            await broken.append(make_entry())


class TestSchemaValidation:
    def schema(self) -> CollectionSchema:
        return CollectionSchema.for_entry("campaign", make_entry())

    def test_valid_row(self):
        self.schema().validate_row(make_entry().to_row())

    def test_wrong_type(self):
        row = make_entry().to_row() | {"turn": "seven"}
        with pytest.raises(SchemaViolationError, match="turn"):
            self.schema().validate_row(row)

    def test_null_in_required_column(self):
        row = make_entry().to_row() | {"category": None}
        with pytest.raises(SchemaViolationError, match="not nullable"):
            self.schema().validate_row(row)

    def test_unexpected_column(self):
        row = make_entry().to_row() | {"mood": "grim"}
        with pytest.raises(SchemaViolationError):
            self.schema().validate_row(row)


# ── Concurrent bootstrap ──


class TestConcurrentBootstrap:
    async def test_concurrent_first_appends_create_one_schema(self, store):
        first = InMemoryVectorIndex("shared", store=store)
        second = InMemoryVectorIndex("shared", store=store)

        outcomes = await asyncio.gather(
            first.append(make_entry(turn=1, embedding=unit(0))),
            second.append(make_entry(turn=2, embedding=unit(1))),
        )

        assert outcomes == [AppendOutcome.APPENDED, AppendOutcome.APPENDED]
        assert store.creations["shared"] == 1
        assert first.schema == second.schema
        hits = await first.search(unit(0), limit=10)
        assert sorted(hit.entry.turn for hit in hits) == [1, 2]

    async def test_divergent_first_appends_converge_on_the_winner(self, store):
        first = InMemoryVectorIndex("shared", store=store)
        second = InMemoryVectorIndex("shared", store=store)

        outcomes = await asyncio.gather(
            first.append(make_entry(embedding=unit(0))),
            second.append(make_entry(embedding=[1.0, 0.0, 0.0])),
        )

        assert sorted(o.value for o in outcomes) == ["appended", "discarded"]
        assert store.creations["shared"] == 1
        assert first.schema.dimension == second.schema.dimension
        assert await first.count() == 1

    async def test_many_appends_on_one_index(self, index, store):
        await asyncio.gather(*(index.append(make_entry(turn=t)) for t in range(5)))
        assert store.creations["campaign"] == 1
        assert await index.count() == 5


# ── Search ──


class TestSearch:
    async def test_round_trip(self, index):
        for i in range(3):
            await index.append(make_entry(turn=i, embedding=unit(i), content=f"entry {i}"))

        hits = await index.search(unit(1), limit=3)

        assert hits[0].entry.content == "entry 1"
        assert hits[0].distance == pytest.approx(0.0, abs=1e-5)
        assert [h.distance for h in hits] == sorted(h.distance for h in hits)

    async def test_entry_fields_survive_storage(self, index):
        original = make_entry(
            turn=4,
            npc="Ana",
            location="Harbor",
            important_fact=True,
            fact_summary="Ana owes the captain",
            present_characters=["Ana", "Bruno"],
        )
        await index.append(original)
        [hit] = await index.search(unit(0), limit=1)
        assert hit.entry.npc == "Ana"
        assert hit.entry.present_characters == ("Ana", "Bruno")
        assert hit.entry.fact_summary == "Ana owes the captain"
        assert abs((hit.entry.timestamp - original.timestamp).total_seconds()) < 1e-3

    async def test_category_filter(self, index):
        await index.append(make_entry(turn=1, category=MemoryCategory.EVENT))
        await index.append(make_entry(turn=2, category=MemoryCategory.CONCEPT))
        await index.append(make_entry(turn=3, category=MemoryCategory.EVENT))

        hits = await index.search(unit(0), limit=10, filters={"category": "event"})

        assert sorted(h.entry.turn for h in hits) == [1, 3]
        assert all(h.entry.category is MemoryCategory.EVENT for h in hits)

    async def test_turn_range_is_inclusive(self, index):
        for turn in range(1, 11):
            await index.append(make_entry(turn=turn))

        hits = await index.search(unit(0), limit=10, filters={"turn_min": 5, "turn_max": 7})

        assert sorted(h.entry.turn for h in hits) == [5, 6, 7]

    async def test_filters_apply_before_limit(self, index):
        # The nearest entries are all concepts; the one event is far away
        for turn in range(5):
            await index.append(make_entry(turn=turn, category=MemoryCategory.CONCEPT, embedding=unit(0)))
        await index.append(make_entry(turn=9, category=MemoryCategory.EVENT, embedding=unit(3)))

        hits = await index.search(unit(0), limit=1, filters={"category": "event"})

        assert [h.entry.turn for h in hits] == [9]

    async def test_limit_zero(self, index):
        await index.append(make_entry())
        assert await index.search(unit(0), limit=0) == []

    async def test_wrong_query_dimension(self, index):
        await index.append(make_entry())
        with pytest.raises(SearchError, match="dimension"):
            await index.search([1.0, 0.0], limit=1)

    async def test_invalid_filter(self, index):
        with pytest.raises(InvalidFilterError):
            await index.search(unit(0), limit=1, filters={"mood": "grim"})

    async def test_store_failure_becomes_search_error(self, index, store):
        await index.append(make_entry())
        broken = UnreachableIndex("campaign", store=store)
        with pytest.raises(SearchError):
            await broken.search(unit(0), limit=1)

    async def test_timeout_becomes_search_error(self, index, store):
        await index.append(make_entry())
        slow = SlowIndex("campaign", store=store, timeout=0.01)
        with pytest.raises(SearchError, match="timed out"):
            await slow.search(unit(0), limit=1)


class TestCosineDistances:
    def test_zero_vector_is_at_distance_one(self):
        matrix = np.array([[0.0, 0.0], [1.0, 0.0]], dtype=np.float32)
        distances = cosine_distances(matrix, np.array([1.0, 0.0], dtype=np.float32))
        assert distances.tolist() == pytest.approx([1.0, 0.0])

    def test_opposite_vectors(self):
        matrix = np.array([[-1.0, 0.0]], dtype=np.float32)
        assert cosine_distances(matrix, np.array([1.0, 0.0], dtype=np.float32))[0] == pytest.approx(2.0)


class TestFactory:
    def test_memory_backend(self, store):
        config = Settings(_env_file=None, vector_backend="memory", dimension_mismatch_policy="raise")
        index = create_vector_index(config, collection_name="side_quest", store=store)
        assert isinstance(index, InMemoryVectorIndex)
        assert index.collection_name == "side_quest"
        assert index.dimension_mismatch_policy == "raise"

    def test_neo4j_backend_connects_lazily(self):
        index = create_vector_index(Settings(_env_file=None, vector_backend="neo4j"))
        assert isinstance(index, Neo4jVectorIndex)
        assert index.collection_name == "campaign"
        assert index.driver is None
