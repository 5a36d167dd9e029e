"""Memory tools callable by the generation service.

Tool failures never escape this module: every outcome, including an unknown
tool name or malformed arguments, becomes a payload the model can read and
narrate around.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from narrative_memory.core.base import ApplicationError
from narrative_memory.core.errors import ToolNotFoundError
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import (
    MemoryCategory,
    MemoryRole,
    RecallMemoryArgs,
    StoreMemoryArgs,
    ToolCall,
    ToolOutcome,
    ToolResult,
)

if TYPE_CHECKING:
    from narrative_memory.services.context_manager import ContextManager
    from narrative_memory.services.semantic_search import SemanticSearch

logger = get_logger(__name__)

_CATEGORIES = [c.value for c in MemoryCategory]

TOOL_DECLARATIONS: list[dict[str, Any]] = [
    {
        "name": "store_memory",
        "description": (
            "Save a new fact, event, description or concept to long-term memory. "
            "Use it for information that shapes the story or the world."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "content": {"type": "string", "description": "Full text of the memory."},
                "category": {
                    "type": "string",
                    "enum": _CATEGORIES,
                    "description": (
                        "narration (dialogue, actions), event (something concrete that happened), "
                        "description (a place, NPC or object), concept (lore, world rules, relations)."
                    ),
                },
                "important_fact": {
                    "type": "boolean",
                    "description": "True if the memory is crucial to the plot or to future decisions.",
                },
                "fact_summary": {
                    "type": "string",
                    "description": "When important_fact is true, a very short summary of the fact.",
                },
                "npc": {"type": "string", "description": "Main NPC this memory is about, if any."},
                "location": {"type": "string", "description": "Where this memory takes place, if applicable."},
                "present_characters": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Names of the characters present in the scene.",
                },
            },
            "required": ["content", "category"],
        },
    },
    {
        "name": "recall_memory",
        "description": (
            "Search long-term memory for relevant information, optionally filtered by metadata "
            "for precise results."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search term or question."},
                "max_results": {"type": "integer", "description": "Maximum number of results."},
                "category": {"type": "string", "enum": _CATEGORIES, "description": "Only this category."},
                "npc": {"type": "string", "description": "Only memories about this NPC."},
                "location": {"type": "string", "description": "Only memories from this location."},
                "important_fact": {"type": "boolean", "description": "Only memories marked as important facts."},
                "turn_min": {"type": "integer", "description": "Only memories from this turn onwards (inclusive)."},
                "turn_max": {"type": "integer", "description": "Only memories up to this turn (inclusive)."},
            },
            "required": ["query"],
        },
    },
]


class MemoryToolExecutor:
    """Dispatches tool calls to the context manager and semantic search."""

    def __init__(self, context_manager: ContextManager, search: SemanticSearch, default_limit: int = 5):
        self.context_manager = context_manager
        self.search = search
        self.default_limit = default_limit
        self._handlers: dict[str, Callable[[dict[str, Any], int], Awaitable[ToolOutcome]]] = {
            "store_memory": self.store_memory,
            "recall_memory": self.recall_memory,
        }

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers)

    async def store_memory(self, args: dict[str, Any], turn: int) -> ToolOutcome:
        parsed = StoreMemoryArgs.model_validate(args)
        entry = await self.context_manager.add_entry(
            role=MemoryRole.SYSTEM,
            content=parsed.content,
            turn=turn,
            metadata=parsed.to_metadata(),
        )
        if entry is None:
            return ToolOutcome(success=False, message=f"Memory of category '{parsed.category.value}' was not saved.")
        return ToolOutcome(success=True, message=f"Memory of category '{parsed.category.value}' saved.")

    async def recall_memory(self, args: dict[str, Any], turn: int) -> ToolOutcome:
        parsed = RecallMemoryArgs.model_validate(args)
        results = await self.search.search(
            parsed.query,
            limit=parsed.max_results or self.default_limit,
            filters=parsed.to_filters(),
        )
        if not results.hits:
            return ToolOutcome(
                success=True,
                entries=[],
                message="No memory entries matched the query and filters.",
            )
        return ToolOutcome(success=True, entries=results.summaries())

    async def execute(self, call: ToolCall, turn: int) -> ToolResult:
        """Run one tool call and wrap its outcome, whatever it is, as a result payload."""
        try:
            handler = self._handlers.get(call.name)
            if handler is None:
                raise ToolNotFoundError(call.name)
            outcome = await handler(call.args, turn)
        except ToolNotFoundError as e:
            logger.warning("Generation service requested an unknown tool", tool=call.name)
            outcome = ToolOutcome(success=False, message=e.message)
        except ValidationError as e:
            logger.warning("Tool called with invalid arguments", tool=call.name, errors=e.error_count())
            outcome = ToolOutcome(success=False, message=f"Invalid arguments for {call.name}: {e}")
        except ApplicationError as e:
            logger.error("Tool call failed", tool=call.name, error_code=e.code.value, error=e.message)
            outcome = ToolOutcome(success=False, message=f"{call.name} failed: {e.message}")
        except Exception as e:
            logger.error("Tool call crashed", tool=call.name, error=e, exc_info=True)
            outcome = ToolOutcome(success=False, message=f"{call.name} failed: {e}")

        logger.debug("Tool call completed", tool=call.name, success=outcome.success, turn=turn)
        return ToolResult(call_id=call.id, name=call.name, payload=outcome.to_payload())

    async def execute_all(self, calls: list[ToolCall], turn: int) -> list[ToolResult]:
        """Run calls concurrently; results come back in the order they were requested."""
        return list(await asyncio.gather(*(self.execute(call, turn) for call in calls)))
