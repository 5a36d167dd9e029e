"""Selection of the vector index engine from configuration."""

from neo4j import AsyncDriver

from narrative_memory.core.config import Settings, settings
from narrative_memory.core.logging import get_logger
from narrative_memory.infrastructure.vector.base import VectorIndex
from narrative_memory.infrastructure.vector.memory_index import InMemoryStore, InMemoryVectorIndex
from narrative_memory.infrastructure.vector.neo4j_index import Neo4jVectorIndex

logger = get_logger(__name__)


def create_vector_index(
    config: Settings | None = None,
    collection_name: str | None = None,
    driver: AsyncDriver | None = None,
    store: InMemoryStore | None = None,
) -> VectorIndex:
    """Build the configured engine. The index connects lazily on first use or ``open()``."""
    config = config or settings
    name = collection_name or config.collection_name

    index: VectorIndex
    if config.vector_backend == "memory":
        index = InMemoryVectorIndex(
            name,
            store=store,
            dimension_mismatch_policy=config.dimension_mismatch_policy,
            timeout=config.store_timeout_seconds,
        )
    else:
        index = Neo4jVectorIndex(
            name,
            driver=driver,
            dimension_mismatch_policy=config.dimension_mismatch_policy,
            timeout=config.store_timeout_seconds,
        )

    logger.info("Vector index configured", engine=index.engine, collection=name)
    return index
