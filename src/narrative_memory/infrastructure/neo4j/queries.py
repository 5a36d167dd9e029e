"""Centralized Cypher for memory collections.

Every query the Neo4j vector index runs is built here. A collection is a
``MemoryCollection`` node holding the schema; its entries are ``MemoryEntry``
nodes carrying the flattened columns plus a ``collection`` property.
"""

from typing import Any, LiteralString, cast

from narrative_memory.domain.models.filters import Predicate
from narrative_memory.infrastructure.neo4j.filter_compiler import compile_predicates


class CollectionQueries:
    """All collection-related queries in one place."""

    @staticmethod
    def schema_constraints() -> list[LiteralString]:
        """Idempotent constraints and indexes created before the first collection is bootstrapped."""
        return [
            "CREATE CONSTRAINT memory_collection_name IF NOT EXISTS "
            "FOR (c:MemoryCollection) REQUIRE c.name IS UNIQUE",
            "CREATE INDEX memory_entry_collection_turn IF NOT EXISTS "
            "FOR (m:MemoryEntry) ON (m.collection, m.turn)",
        ]

    @staticmethod
    def get_collection() -> tuple[LiteralString, dict[str, Any]]:
        query = """
            MATCH (c:MemoryCollection {name: $name})
            RETURN c {.*} AS collection
            """
        return query, {}

    @staticmethod
    def create_collection() -> tuple[LiteralString, dict[str, Any]]:
        """MERGE on the unique name: the losing writer gets the winner's properties back."""
        query = """
            MERGE (c:MemoryCollection {name: $name})
            ON CREATE SET c.dimension = $dimension,
                          c.columns = $columns,
                          c.created_at = $created_at
            RETURN c {.*} AS collection
            """
        return query, {}

    @staticmethod
    def append_entry() -> tuple[LiteralString, dict[str, Any]]:
        query = """
            CREATE (m:MemoryEntry)
            SET m = $row, m.collection = $name, m.id = randomUUID()
            RETURN m.id AS id
            """
        return query, {}

    @staticmethod
    def _where(predicates: list[Predicate]) -> tuple[str, dict[str, Any]]:
        clauses, params = compile_predicates(predicates, alias="m")
        conditions = ["m.collection = $name", *clauses]
        return "WHERE " + " AND ".join(conditions), params

    @staticmethod
    def nearest_entries(predicates: list[Predicate]) -> tuple[LiteralString, dict[str, Any]]:
        """Exact nearest-neighbour search with filters applied before ranking.

        ``vector.similarity.cosine`` returns (1 + cos) / 2, or null when either
        vector has zero norm; such entries rank as orthogonal (0.5).
        """
        where, params = CollectionQueries._where(predicates)
        query = f"""
            MATCH (m:MemoryEntry)
            {where}
            WITH m, coalesce(vector.similarity.cosine(m.embedding, $embedding), 0.5) AS similarity
            ORDER BY similarity DESC, m.timestamp ASC
            LIMIT $limit
            RETURN m {{.*}} AS entry, similarity
            """
        return cast(LiteralString, query), params

    @staticmethod
    def count_entries(predicates: list[Predicate]) -> tuple[LiteralString, dict[str, Any]]:
        where, params = CollectionQueries._where(predicates)
        query = f"""
            MATCH (m:MemoryEntry)
            {where}
            RETURN count(m) AS total
            """
        return cast(LiteralString, query), params
