"""Tests for the memory tools exposed to the generation service."""

import pytest

from conftest import FakeEmbeddings, unit
from narrative_memory.domain.models import EmbeddingType, MemoryCategory, ToolCall
from narrative_memory.services.context_manager import ContextManager
from narrative_memory.services.memory_tools import TOOL_DECLARATIONS, MemoryToolExecutor
from narrative_memory.services.semantic_search import SemanticSearch


def executor_for(index, embeddings) -> MemoryToolExecutor:
    return MemoryToolExecutor(ContextManager(index, embeddings), SemanticSearch(index, embeddings))


@pytest.fixture
def executor(index, embeddings) -> MemoryToolExecutor:
    return executor_for(index, embeddings)


def call(name: str, call_id: str = "call-1", **args) -> ToolCall:
    return ToolCall(id=call_id, name=name, args=args)


# ── Declarations ──


class TestDeclarations:
    def test_both_tools_are_declared(self):
        assert [tool["name"] for tool in TOOL_DECLARATIONS] == ["store_memory", "recall_memory"]

    def test_store_requires_content_and_category(self):
        store = TOOL_DECLARATIONS[0]["input_schema"]
        assert store["required"] == ["content", "category"]
        assert store["properties"]["category"]["enum"] == [c.value for c in MemoryCategory]

    def test_recall_exposes_turn_range(self):
        properties = TOOL_DECLARATIONS[1]["input_schema"]["properties"]
        assert {"turn_min", "turn_max", "npc", "location", "important_fact"} <= set(properties)


# ── store_memory ──


class TestStoreMemory:
    async def test_stores_with_turn_and_tags(self, executor, index):
        result = await executor.execute(
            call(
                "store_memory",
                content="The bridge to Kelm collapsed",
                category="event",
                important_fact=True,
                fact_summary="Bridge to Kelm is gone",
                location="Kelm",
            ),
            turn=6,
        )

        assert result.call_id == "call-1"
        assert result.payload == {"success": True, "message": "Memory of category 'event' saved."}
        [hit] = await index.search(unit(0), limit=1)
        assert hit.entry.turn == 6
        assert hit.entry.location == "Kelm"
        assert hit.entry.important_fact is True

    async def test_invalid_category(self, executor, index):
        result = await executor.execute(call("store_memory", content="x", category="gossip"), turn=1)
        assert result.payload["success"] is False
        assert "Invalid arguments" in result.payload["message"]
        assert await index.count() == 0

    async def test_missing_content(self, executor):
        result = await executor.execute(call("store_memory", category="event"), turn=1)
        assert result.payload["success"] is False

    async def test_failed_write_is_reported(self, index):
        executor = executor_for(index, FakeEmbeddings(fail_intents={EmbeddingType.DOCUMENT}))
        result = await executor.execute(call("store_memory", content="x", category="concept"), turn=1)
        assert result.payload == {"success": False, "message": "Memory of category 'concept' was not saved."}


# ── recall_memory ──


class TestRecallMemory:
    async def test_empty_memory(self, executor):
        result = await executor.execute(call("recall_memory", query="the old lighthouse"), turn=1)
        assert result.payload == {
            "success": True,
            "entries": [],
            "message": "No memory entries matched the query and filters.",
        }

    async def test_category_filter(self, executor):
        await executor.execute(call("store_memory", content="Kelm has a tall tower", category="description"), turn=1)
        await executor.execute(call("store_memory", content="The tower fell at dawn", category="event"), turn=2)

        result = await executor.execute(call("recall_memory", query="tower", category="event"), turn=3)

        assert result.payload["success"] is True
        [entry] = result.payload["entries"]
        assert entry["content"] == "The tower fell at dawn"
        assert entry["category"] == "event"
        assert "embedding" not in entry

    async def test_turn_range(self, executor):
        for turn in range(1, 6):
            await executor.execute(call("store_memory", content=f"day {turn}", category="event"), turn=turn)

        result = await executor.execute(call("recall_memory", query="day", turn_min=2, turn_max=3, max_results=10), 6)

        assert sorted(e["turn"] for e in result.payload["entries"]) == [2, 3]

    async def test_inverted_turn_range(self, executor):
        result = await executor.execute(call("recall_memory", query="day", turn_min=8, turn_max=3), turn=1)
        assert result.payload["success"] is False
        assert "Empty range" in result.payload["message"]

    async def test_search_failure_becomes_payload(self, index):
        executor = executor_for(index, FakeEmbeddings(fail_intents={EmbeddingType.QUERY}))
        result = await executor.execute(call("recall_memory", query="anything"), turn=1)
        assert result.payload["success"] is False
        assert result.payload["message"].startswith("recall_memory failed")


# ── Dispatch ──


class TestDispatch:
    async def test_unknown_tool(self, executor):
        result = await executor.execute(call("forget_everything"), turn=1)
        assert result.name == "forget_everything"
        assert result.payload["success"] is False
        assert "forget_everything" in result.payload["message"]

    async def test_results_keep_request_order(self, index):
        # The first query resolves last
        embeddings = FakeEmbeddings(delays={"slow query": 0.05})
        executor = executor_for(index, embeddings)

        results = await executor.execute_all(
            [
                call("recall_memory", "a", query="slow query"),
                call("recall_memory", "b", query="fast query"),
                call("store_memory", "c", content="a note", category="concept"),
            ],
            turn=1,
        )

        assert [r.call_id for r in results] == ["a", "b", "c"]
        assert all(r.payload["success"] for r in results)

    async def test_unexpected_error_becomes_payload(self, index):
        class BrokenEmbeddings(FakeEmbeddings):
            async def embed(self, text, intent):
                if text == "cursed query":
                    raise RuntimeError("vector went missing")
                return await super().embed(text, intent)

        executor = executor_for(index, BrokenEmbeddings())

        results = await executor.execute_all(
            [
                call("recall_memory", "a", query="cursed query"),
                call("store_memory", "b", content="a note", category="concept"),
            ],
            turn=2,
        )

        assert [r.call_id for r in results] == ["a", "b"]
        assert results[0].payload == {"success": False, "message": "recall_memory failed: vector went missing"}
        assert results[1].payload["success"] is True
