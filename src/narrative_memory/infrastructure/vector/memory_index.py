"""Process-local vector index backed by numpy.

Used for development without a database and throughout the test suite. The
``InMemoryStore`` plays the role of the backing store: several index objects
opened on the same store and collection name share rows, exactly like several
connections to one database would.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from narrative_memory.domain.models.filters import Predicate, matches_all
from narrative_memory.domain.models.memory import MemoryEntry, MemoryHit
from narrative_memory.infrastructure.vector.base import (
    CollectionSchema,
    DimensionMismatchPolicy,
    VectorIndex,
)


@dataclass
class _Collection:
    schema: CollectionSchema
    rows: list[dict[str, Any]] = field(default_factory=list)
    vectors: list[np.ndarray] = field(default_factory=list)


class InMemoryStore:
    """Named collections held in process memory."""

    def __init__(self) -> None:
        self._collections: dict[str, _Collection] = {}
        self.creations: dict[str, int] = {}

    def get_schema(self, name: str) -> CollectionSchema | None:
        collection = self._collections.get(name)
        return collection.schema if collection else None

    def create(self, schema: CollectionSchema) -> CollectionSchema:
        """Create-if-absent. There is no await between the check and the insert."""
        existing = self._collections.get(schema.name)
        if existing is not None:
            return existing.schema
        self._collections[schema.name] = _Collection(schema=schema)
        self.creations[schema.name] = self.creations.get(schema.name, 0) + 1
        return schema

    def collection(self, name: str) -> _Collection:
        return self._collections[name]


default_store = InMemoryStore()


def cosine_distances(matrix: np.ndarray, vector: np.ndarray) -> np.ndarray:
    """1 - cosine similarity of every row of ``matrix`` with ``vector``; zero vectors are at distance 1."""
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(vector)
    dots = matrix @ vector
    with np.errstate(divide="ignore", invalid="ignore"):
        similarity = np.where(norms > 0, dots / norms, 0.0)
    return 1.0 - similarity


class InMemoryVectorIndex(VectorIndex):
    """Exact nearest-neighbour search over a numpy matrix, filters applied first."""

    engine = "memory"

    def __init__(
        self,
        collection_name: str,
        store: InMemoryStore | None = None,
        dimension_mismatch_policy: DimensionMismatchPolicy = "discard",
        timeout: float | None = None,
    ):
        super().__init__(collection_name, dimension_mismatch_policy=dimension_mismatch_policy, timeout=timeout)
        self.store = store or default_store

    async def _connect(self) -> None:
        return None

    async def _disconnect(self) -> None:
        return None

    async def _load_schema(self) -> CollectionSchema | None:
        return self.store.get_schema(self.collection_name)

    async def _create_collection(self, schema: CollectionSchema) -> CollectionSchema:
        # Yield once so concurrent bootstraps genuinely interleave, as they would over a network
        await asyncio.sleep(0)
        return self.store.create(schema)

    async def _insert(self, row: dict[str, Any]) -> None:
        collection = self.store.collection(self.collection_name)
        collection.rows.append(row)
        collection.vectors.append(np.asarray(row["embedding"], dtype=np.float32))

    async def _query(self, vector: list[float], limit: int, predicates: list[Predicate]) -> list[MemoryHit]:
        collection = self.store.collection(self.collection_name)
        positions = [i for i, row in enumerate(collection.rows) if matches_all(predicates, row)]
        if not positions:
            return []

        matrix = np.stack([collection.vectors[i] for i in positions])
        distances = cosine_distances(matrix, np.asarray(vector, dtype=np.float32))
        order = np.argsort(distances, kind="stable")[:limit]

        return [
            MemoryHit(entry=MemoryEntry.from_row(collection.rows[positions[i]]), distance=float(distances[i]))
            for i in order
        ]

    async def _count(self, predicates: list[Predicate]) -> int:
        collection = self.store.collection(self.collection_name)
        return sum(1 for row in collection.rows if matches_all(predicates, row))
