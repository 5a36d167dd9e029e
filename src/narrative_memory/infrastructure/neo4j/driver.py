"""Neo4j driver and connection management.

This module provides an async Neo4j driver factory and a small query
executor. Driver and database failures leave this module as
``StoreConnectionError`` so callers never handle neo4j exceptions directly.
"""

from collections.abc import Callable
from typing import Any, Generic, LiteralString, TypeVar, cast

from neo4j import AsyncDriver, AsyncGraphDatabase
from neo4j.exceptions import AuthError, DriverError, Neo4jError, ServiceUnavailable, SessionExpired

from narrative_memory.core import ErrorLevel
from narrative_memory.core.base import VectorStoreErrorDetails
from narrative_memory.core.config import settings
from narrative_memory.core.decorators import with_error_handling
from narrative_memory.core.errors import StoreConnectionError
from narrative_memory.core.logging import get_logger

logger = get_logger(__name__)

# Generic type for query results
T = TypeVar("T")


def _translate(error: Exception, operation: str) -> StoreConnectionError:
    if isinstance(error, AuthError):
        message = f"Neo4j rejected the credentials: {error}"
    elif isinstance(error, ServiceUnavailable | SessionExpired):
        message = f"Neo4j is unreachable: {error}"
    else:
        message = f"Neo4j {operation} failed: {error}"
    return StoreConnectionError(
        message,
        details=VectorStoreErrorDetails(
            source="Neo4jQuery",
            operation=operation,
            service_name="neo4j",
            endpoint=settings.neo4j_uri,
        ),
    )


@with_error_handling(error_level=ErrorLevel.ERROR)
async def create_neo4j_driver(
    uri: str | None = None,
    user: str | None = None,
    password: str | None = None,
    max_connection_pool_size: int = 50,
    max_connection_lifetime: int = 3600,
) -> AsyncDriver:
    """Create a Neo4j driver and verify it can reach the server.

    Args:
        uri: Bolt URI, defaults to settings
        user: Username, defaults to settings
        password: Password, defaults to settings
        max_connection_pool_size: Maximum size of the connection pool
        max_connection_lifetime: Maximum lifetime of connections in seconds

    Returns:
        AsyncDriver: Connected Neo4j driver

    Raises:
        StoreConnectionError: If the server is unreachable or rejects the credentials
    """
    uri = uri or settings.neo4j_uri
    logger.info(
        "Creating Neo4j driver",
        uri=uri,
        pool_size=max_connection_pool_size,
        connection_lifetime=max_connection_lifetime,
    )

    driver = AsyncGraphDatabase.driver(
        uri,
        auth=(user or settings.neo4j_user, password or settings.neo4j_password),
        max_connection_pool_size=max_connection_pool_size,
        max_connection_lifetime=max_connection_lifetime,
    )

    try:
        await driver.verify_connectivity()
    except (Neo4jError, DriverError) as e:
        await driver.close()
        raise _translate(e, "connect") from e

    logger.info("Neo4j connection established", uri=uri)
    return driver


class Neo4jQuery(Generic[T]):
    """Neo4j query executor with typed results.

    This class provides methods to execute Cypher queries with
    various result formats. It's designed to be instantiated
    from a driver.
    """

    def __init__(self, driver: AsyncDriver) -> None:
        self.driver: AsyncDriver = driver

    async def execute_list(
        self,
        query: LiteralString,
        params: dict[str, Any] | None = None,
        result_transformer: Callable[[Any], T] | None = None,
    ) -> list[T]:
        """Execute a Neo4j query and return a list of results.

        Raises:
            StoreConnectionError: If query execution fails
        """
        logger.debug("Executing Neo4j query for result list", query=query)

        results: list[T] = []
        try:
            async with self.driver.session() as session:
                result = await session.run(query, parameters=params or {})
                async for record in result:
                    results.append(result_transformer(record) if result_transformer else cast("T", record))
        except (Neo4jError, DriverError) as e:
            raise _translate(e, "query") from e
        return results

    async def execute_single(
        self,
        query: LiteralString,
        params: dict[str, Any] | None = None,
        result_transformer: Callable[[Any], T] | None = None,
    ) -> T | None:
        """Execute a Neo4j query and return a single result, or None if there are no rows."""
        logger.debug("Executing Neo4j query for single result", query=query)

        try:
            async with self.driver.session() as session:
                result = await session.run(query, parameters=params or {})
                record = await result.single(strict=False)
        except (Neo4jError, DriverError) as e:
            raise _translate(e, "query") from e

        if record is None:
            return None
        return result_transformer(record) if result_transformer else cast("T", record)

    async def execute_value(
        self,
        query: LiteralString,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute a Neo4j query and return the first value from the first record, or None."""
        record = await self.execute_single(query, params)
        if record is not None and len(record) > 0:
            return record[0]
        return None

    async def execute_write(self, query: LiteralString, params: dict[str, Any] | None = None) -> None:
        """Run a statement whose result is not needed (schema and constraint DDL)."""
        logger.debug("Executing Neo4j statement", query=query)
        try:
            async with self.driver.session() as session:
                result = await session.run(query, parameters=params or {})
                await result.consume()
        except (Neo4jError, DriverError) as e:
            raise _translate(e, "write") from e
