"""Short-term conversation models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Speaker(str, Enum):
    """Who spoke a transcript line."""

    PLAYER = "player"
    NARRATOR = "narrator"


class ConversationTurn(BaseModel):
    """One line of the short-term transcript. Never persisted to the vector store."""

    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str
    turn: int


class ToolCall(BaseModel):
    """A tool invocation requested by the generation service."""

    id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """The outcome of a tool invocation, fed back to the generation service."""

    call_id: str
    name: str
    payload: dict[str, Any]


class ChatMessage(BaseModel):
    """Provider-neutral transcript message exchanged with the generation service."""

    role: str = Field(..., pattern="^(user|assistant)$")
    text: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_results: list[ToolResult] = Field(default_factory=list)


class GenerationResult(BaseModel):
    """Reply from the generation service: narration text, tool calls, or both."""

    text: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class GameUpdate(BaseModel):
    """Everything the transport needs to render one completed turn.

    Serialized with camelCase keys (``playerInput``, ``masterResponse``,
    ``memoryResults``) for the game UI.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    player_input: str
    master_response: str
    memory_results: list[dict[str, Any]] = Field(default_factory=list)
    transcript: list[ConversationTurn] = Field(default_factory=list)
    turn: int
