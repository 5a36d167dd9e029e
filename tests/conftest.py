"""Shared fixtures: deterministic fakes for the external services and in-memory indexes."""

import asyncio
import zlib

import numpy as np
import pytest

from narrative_memory.core.errors import EmbeddingError
from narrative_memory.domain.models import (
    ChatMessage,
    EmbeddingType,
    GenerationResult,
    MemoryCategory,
    MemoryEntry,
    MemoryMetadata,
    MemoryRole,
)
from narrative_memory.infrastructure.vector.memory_index import InMemoryStore, InMemoryVectorIndex

DIMENSION = 8


class FakeEmbeddings:
    """Deterministic embeddings: the same text always maps to the same vector, whatever the intent."""

    def __init__(
        self,
        dimension: int = DIMENSION,
        vectors: dict[str, list[float]] | None = None,
        delays: dict[str, float] | None = None,
        fail_intents: set[EmbeddingType] | None = None,
    ):
        self.dimension = dimension
        self.vectors = vectors or {}
        self.delays = delays or {}
        self.fail_intents = fail_intents or set()
        self.calls: list[tuple[str, EmbeddingType]] = []

    async def embed(self, text: str, intent: EmbeddingType) -> list[float]:
        self.calls.append((text, intent))
        if text in self.delays:
            await asyncio.sleep(self.delays[text])
        if intent in self.fail_intents:
            raise EmbeddingError("embedding provider unavailable")
        if text in self.vectors:
            return list(self.vectors[text])
        rng = np.random.default_rng(zlib.crc32(text.encode("utf-8")))
        return rng.standard_normal(self.dimension).tolist()


class ScriptedGenerator:
    """Returns queued replies in order and records every transcript it was sent."""

    def __init__(self, replies: list[GenerationResult] | None = None, error: Exception | None = None):
        self.replies = list(replies or [])
        self.error = error
        self.requests: list[list[ChatMessage]] = []
        self.tools_seen: list[list[dict] | None] = []
        self.closed = False

    async def generate(self, messages: list[ChatMessage], tools: list[dict] | None = None) -> GenerationResult:
        self.requests.append(list(messages))
        self.tools_seen.append(tools)
        if self.error is not None:
            raise self.error
        if not self.replies:
            return GenerationResult(text="The wind howls across the empty plain.")
        return self.replies.pop(0)

    async def close(self) -> None:
        self.closed = True


def unit(index: int, dimension: int = DIMENSION) -> list[float]:
    """Basis vector ``index``; distinct basis vectors are at cosine distance 1."""
    vector = [0.0] * dimension
    vector[index] = 1.0
    return vector


def make_entry(
    turn: int = 1,
    embedding: list[float] | None = None,
    content: str | None = None,
    category: MemoryCategory = MemoryCategory.EVENT,
    **tags,
) -> MemoryEntry:
    return MemoryEntry.build(
        role=MemoryRole.SYSTEM,
        content=content or f"memory from turn {turn}",
        turn=turn,
        metadata=MemoryMetadata(category=category, **tags),
        embedding=embedding if embedding is not None else unit(0),
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def index(store: InMemoryStore) -> InMemoryVectorIndex:
    return InMemoryVectorIndex("campaign", store=store)


@pytest.fixture
def embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()
