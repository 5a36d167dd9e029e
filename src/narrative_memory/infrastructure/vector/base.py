"""Engine-independent vector index behaviour.

A collection is schematized lazily: until its first entry is appended it is
``NOT_CREATED`` and searches return nothing. The first well-formed entry fixes
the embedding dimensionality and the column types for the lifetime of the
collection. Bootstrapping is serialized per index with an asyncio lock, and
engines must make collection creation idempotent in the backing store so that
concurrent first writers converge on the schema that actually won.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from narrative_memory.core.base import ValidationErrorDetails, VectorStoreErrorDetails
from narrative_memory.core.errors import (
    DimensionMismatchError,
    SchemaViolationError,
    SearchError,
    StoreConnectionError,
)
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models.filters import Predicate, parse_filters
from narrative_memory.domain.models.memory import (
    COLUMN_TYPES,
    NULLABLE_COLUMNS,
    ColumnType,
    MemoryEntry,
    MemoryHit,
)
from narrative_memory.domain.models.utils import utc_now

logger = get_logger(__name__)

T = TypeVar("T")

DimensionMismatchPolicy = Literal["discard", "raise"]


class CollectionState(str, Enum):
    NOT_CREATED = "not_created"
    CREATED = "created"


class AppendOutcome(str, Enum):
    """Result of an append. A discarded entry was never persisted."""

    APPENDED = "appended"
    DISCARDED = "discarded"


def _type_matches(kind: ColumnType, value: Any) -> bool:
    if kind is ColumnType.STRING:
        return isinstance(value, str)
    if kind is ColumnType.BOOLEAN:
        return isinstance(value, bool)
    if kind is ColumnType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if kind is ColumnType.FLOAT:
        return isinstance(value, int | float) and not isinstance(value, bool)
    return isinstance(value, list | tuple) and all(
        isinstance(x, int | float) and not isinstance(x, bool) for x in value
    )


class CollectionSchema(BaseModel):
    """Dimensionality and column types fixed by a collection's first entry."""

    model_config = ConfigDict(frozen=True)

    name: str
    dimension: int = Field(gt=0)
    columns: dict[str, ColumnType]
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_entry(cls, name: str, entry: MemoryEntry) -> "CollectionSchema":
        return cls(name=name, dimension=entry.dimension, columns=dict(COLUMN_TYPES))

    def validate_row(self, row: Mapping[str, Any]) -> None:
        """Check a flattened row against the fixed column types.

        Raises:
            SchemaViolationError: a column is missing, unexpected, null where not
                nullable, or of the wrong type
        """
        missing = set(self.columns) - set(row)
        unexpected = set(row) - set(self.columns)
        if missing or unexpected:
            raise SchemaViolationError(
                f"Row columns do not match collection '{self.name}'",
                details=ValidationErrorDetails(
                    source="vector_index",
                    operation="validate_row",
                    actual_value={"missing": sorted(missing), "unexpected": sorted(unexpected)},
                    constraint="row columns == collection columns",
                ),
            )

        for column, kind in self.columns.items():
            value = row[column]
            if value is None:
                if column in NULLABLE_COLUMNS:
                    continue
                raise SchemaViolationError(
                    f"Column '{column}' of collection '{self.name}' is not nullable",
                    details=ValidationErrorDetails(
                        source="vector_index",
                        operation="validate_row",
                        field=column,
                        expected_type=kind.value,
                        constraint="not null",
                    ),
                )
            if not _type_matches(kind, value):
                raise SchemaViolationError(
                    f"Column '{column}' of collection '{self.name}' holds {kind.value}, got {type(value).__name__}",
                    details=ValidationErrorDetails(
                        source="vector_index",
                        operation="validate_row",
                        field=column,
                        actual_value=repr(value)[:100],
                        expected_type=kind.value,
                    ),
                )


class VectorIndex(ABC):
    """A named, lazily-schematized collection of memory entries.

    Subclasses implement the storage primitives; this class owns the
    collection state machine, dimension checks, row validation, filter
    parsing, timeouts and error translation.
    """

    engine: str = "abstract"

    def __init__(
        self,
        collection_name: str,
        dimension_mismatch_policy: DimensionMismatchPolicy = "discard",
        timeout: float | None = None,
    ):
        self.collection_name = collection_name
        self.dimension_mismatch_policy = dimension_mismatch_policy
        self.timeout = timeout
        self._schema: CollectionSchema | None = None
        self._opened = False
        self._open_lock = asyncio.Lock()
        self._bootstrap_lock = asyncio.Lock()

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> CollectionState:
        return CollectionState.CREATED if self._schema else CollectionState.NOT_CREATED

    @property
    def schema(self) -> CollectionSchema | None:
        return self._schema

    def _details(self, operation: str) -> VectorStoreErrorDetails:
        return VectorStoreErrorDetails(
            source=type(self).__name__,
            operation=operation,
            service_name=self.engine,
            collection=self.collection_name,
            query_type=operation,
        )

    async def _guard(self, awaitable: Awaitable[T], operation: str) -> T:
        """Apply the store timeout and translate engine failures into StoreConnectionError."""
        try:
            if self.timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except StoreConnectionError:
            raise
        except (TimeoutError, asyncio.TimeoutError) as e:
            raise StoreConnectionError(
                f"Vector store timed out during {operation} on '{self.collection_name}'",
                details=self._details(operation),
            ) from e
        except (OSError, ConnectionError) as e:
            raise StoreConnectionError(
                f"Vector store unreachable during {operation}: {e}",
                details=self._details(operation),
            ) from e

    # -- lifecycle -----------------------------------------------------------

    async def open(self) -> CollectionState:
        """Connect and load the collection schema if the collection exists.

        Raises:
            StoreConnectionError: the backing store is unreachable
        """
        async with self._open_lock:
            if not self._opened:
                await self._guard(self._connect(), "connect")
                self._schema = await self._guard(self._load_schema(), "load_schema")
                self._opened = True
                if self._schema:
                    logger.info(
                        "Loaded memory collection",
                        collection=self.collection_name,
                        dimension=self._schema.dimension,
                        engine=self.engine,
                    )
                else:
                    logger.info(
                        "Memory collection not found; it will be created on first append",
                        collection=self.collection_name,
                        engine=self.engine,
                    )
        return self.state

    async def _ensure_open(self) -> None:
        if not self._opened:
            await self.open()

    async def close(self) -> None:
        await self._disconnect()
        self._opened = False

    # -- write path ----------------------------------------------------------

    async def append(self, entry: MemoryEntry) -> AppendOutcome:
        """Persist one entry as a flattened row.

        The first well-formed entry creates the collection. An entry whose
        embedding length differs from the collection dimension is discarded
        with a warning, or raises under the ``raise`` policy.

        Raises:
            DimensionMismatchError: mismatched dimension under the ``raise`` policy
            SchemaViolationError: the row breaks the fixed column types
            StoreConnectionError: the backing store failed
        """
        await self._ensure_open()

        if entry.dimension == 0:
            return self._reject(entry, expected=self._schema.dimension if self._schema else None)

        schema = self._schema or await self._bootstrap(entry)
        if entry.dimension != schema.dimension:
            return self._reject(entry, expected=schema.dimension)

        row = entry.to_row()
        schema.validate_row(row)
        await self._guard(self._insert(row), "append")
        logger.debug("Appended memory", collection=self.collection_name, turn=entry.turn, category=entry.category.value)
        return AppendOutcome.APPENDED

    async def _bootstrap(self, entry: MemoryEntry) -> CollectionSchema:
        async with self._bootstrap_lock:
            if self._schema is None:
                proposed = CollectionSchema.for_entry(self.collection_name, entry)
                self._schema = await self._guard(self._create_collection(proposed), "bootstrap")
                if self._schema.dimension != proposed.dimension:
                    logger.warning(
                        "Collection was created concurrently with a different dimension",
                        collection=self.collection_name,
                        winning_dimension=self._schema.dimension,
                        proposed_dimension=proposed.dimension,
                    )
                else:
                    logger.info(
                        "Memory collection ready",
                        collection=self.collection_name,
                        dimension=self._schema.dimension,
                    )
            return self._schema

    def _reject(self, entry: MemoryEntry, expected: int | None) -> AppendOutcome:
        message = (
            f"Embedding dimension {entry.dimension} does not match collection "
            f"'{self.collection_name}' dimension {expected}"
        )
        if self.dimension_mismatch_policy == "raise":
            raise DimensionMismatchError(
                message,
                expected=expected or 0,
                actual=entry.dimension,
                details=ValidationErrorDetails(
                    source="vector_index",
                    operation="append",
                    field="embedding",
                    actual_value=entry.dimension,
                    constraint=f"len(embedding) == {expected}",
                ),
            )
        logger.warning(
            "Memory entry discarded: embedding dimension mismatch",
            collection=self.collection_name,
            expected_dimension=expected,
            actual_dimension=entry.dimension,
            turn=entry.turn,
        )
        return AppendOutcome.DISCARDED

    # -- read path -----------------------------------------------------------

    async def search(
        self,
        query_vector: list[float],
        limit: int = 5,
        filters: Mapping[str, Any] | None = None,
    ) -> list[MemoryHit]:
        """Return the ``limit`` nearest entries passing every filter, nearest first.

        A collection that has never been written to yields an empty list.

        Raises:
            InvalidFilterError: a filter names an unknown field or has a bad value
            SearchError: the query vector has the wrong dimension or the store failed
        """
        predicates = parse_filters(filters)
        if limit <= 0:
            return []

        try:
            await self._ensure_open()
            schema = self._schema
            if schema is None:
                # Another writer may have created the collection since we opened it
                schema = self._schema = await self._guard(self._load_schema(), "load_schema")
            if schema is None:
                logger.info("Search skipped: memory collection does not exist yet", collection=self.collection_name)
                return []

            if len(query_vector) != schema.dimension:
                raise SearchError(
                    f"Query vector dimension {len(query_vector)} does not match collection dimension {schema.dimension}",  # noqa: E501
                    details=self._details("search"),
                )

            return await self._guard(self._query(list(query_vector), limit, predicates), "search")
        except StoreConnectionError as e:
            raise SearchError(f"Memory search failed: {e.message}", details=self._details("search")) from e

    async def count(self, filters: Mapping[str, Any] | None = None) -> int:
        """Number of persisted entries, optionally filtered."""
        predicates = parse_filters(filters)
        await self._ensure_open()
        if self._schema is None:
            self._schema = await self._guard(self._load_schema(), "load_schema")
        if self._schema is None:
            return 0
        return await self._guard(self._count(predicates), "count")

    async def stats(self) -> dict[str, Any]:
        """Collection state for observability endpoints."""
        count = await self.count()
        return {
            "collection": self.collection_name,
            "engine": self.engine,
            "state": self.state.value,
            "dimension": self._schema.dimension if self._schema else None,
            "count": count,
        }

    # -- engine primitives ---------------------------------------------------

    @abstractmethod
    async def _connect(self) -> None: ...

    @abstractmethod
    async def _disconnect(self) -> None: ...

    @abstractmethod
    async def _load_schema(self) -> CollectionSchema | None:
        """Return the stored schema, or None if the collection does not exist."""

    @abstractmethod
    async def _create_collection(self, schema: CollectionSchema) -> CollectionSchema:
        """Create the collection if absent and return the schema that is actually stored."""

    @abstractmethod
    async def _insert(self, row: dict[str, Any]) -> None: ...

    @abstractmethod
    async def _query(self, vector: list[float], limit: int, predicates: list[Predicate]) -> list[MemoryHit]: ...

    @abstractmethod
    async def _count(self, predicates: list[Predicate]) -> int: ...
