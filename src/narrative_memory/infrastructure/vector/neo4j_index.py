"""Vector index persisted in Neo4j.

Search is exact: filters narrow the collection's entries in Cypher and the
survivors are ranked by cosine similarity. No native vector index is created
because collections sharing the ``MemoryEntry`` label may differ in dimension.
"""

import json
from datetime import datetime
from typing import Any

from neo4j import AsyncDriver

from narrative_memory.domain.models.filters import Predicate
from narrative_memory.domain.models.memory import ColumnType, MemoryEntry, MemoryHit
from narrative_memory.infrastructure.neo4j.driver import Neo4jQuery, create_neo4j_driver
from narrative_memory.infrastructure.neo4j.filter_compiler import merge_params
from narrative_memory.infrastructure.neo4j.queries import CollectionQueries
from narrative_memory.infrastructure.vector.base import (
    CollectionSchema,
    DimensionMismatchPolicy,
    VectorIndex,
)


def similarity_to_distance(similarity: float) -> float:
    """Neo4j's cosine similarity is (1 + cos) / 2; return 1 - cos."""
    return 2.0 - 2.0 * similarity


def _schema_from_node(props: dict[str, Any]) -> CollectionSchema:
    return CollectionSchema(
        name=props["name"],
        dimension=int(props["dimension"]),
        columns={name: ColumnType(kind) for name, kind in json.loads(props["columns"]).items()},
        created_at=datetime.fromisoformat(props["created_at"]),
    )


class Neo4jVectorIndex(VectorIndex):
    """Memory collection stored as Neo4j nodes."""

    engine = "neo4j"

    def __init__(
        self,
        collection_name: str,
        driver: AsyncDriver | None = None,
        dimension_mismatch_policy: DimensionMismatchPolicy = "discard",
        timeout: float | None = None,
    ):
        super().__init__(collection_name, dimension_mismatch_policy=dimension_mismatch_policy, timeout=timeout)
        self.driver = driver
        self._owns_driver = driver is None
        self._executor: Neo4jQuery[Any] | None = None

    @property
    def query(self) -> Neo4jQuery[Any]:
        if self._executor is None:
            raise RuntimeError("Neo4jVectorIndex used before open()")
        return self._executor

    async def _connect(self) -> None:
        if self.driver is None:
            self.driver = await create_neo4j_driver()
        self._executor = Neo4jQuery(self.driver)

    async def _disconnect(self) -> None:
        if self.driver is not None and self._owns_driver:
            await self.driver.close()
            self.driver = None
        self._executor = None

    async def _load_schema(self) -> CollectionSchema | None:
        query, params = CollectionQueries.get_collection()
        props = await self.query.execute_value(query, merge_params(params, {"name": self.collection_name}))
        return _schema_from_node(props) if props else None

    async def _create_collection(self, schema: CollectionSchema) -> CollectionSchema:
        for statement in CollectionQueries.schema_constraints():
            await self.query.execute_write(statement)

        query, params = CollectionQueries.create_collection()
        props = await self.query.execute_value(
            query,
            merge_params(
                params,
                {
                    "name": schema.name,
                    "dimension": schema.dimension,
                    "columns": json.dumps({name: kind.value for name, kind in schema.columns.items()}),
                    "created_at": schema.created_at.isoformat(),
                },
            ),
        )
        return _schema_from_node(props)

    async def _insert(self, row: dict[str, Any]) -> None:
        query, params = CollectionQueries.append_entry()
        # Neo4j does not store null properties; absent keys read back as None
        stored = {key: value for key, value in row.items() if value is not None}
        await self.query.execute_value(query, merge_params(params, {"row": stored, "name": self.collection_name}))

    async def _query(self, vector: list[float], limit: int, predicates: list[Predicate]) -> list[MemoryHit]:
        query, params = CollectionQueries.nearest_entries(predicates)
        records = await self.query.execute_list(
            query,
            merge_params(params, {"name": self.collection_name, "embedding": vector, "limit": limit}),
            result_transformer=lambda record: (dict(record["entry"]), float(record["similarity"])),
        )
        return [
            MemoryHit(entry=MemoryEntry.from_row(props), distance=similarity_to_distance(similarity))
            for props, similarity in records
        ]

    async def _count(self, predicates: list[Predicate]) -> int:
        query, params = CollectionQueries.count_entries(predicates)
        total = await self.query.execute_value(query, merge_params(params, {"name": self.collection_name}))
        return int(total or 0)
