"""Domain models for narrative memory."""

from .conversation import (
    ChatMessage,
    ConversationTurn,
    GameUpdate,
    GenerationResult,
    Speaker,
    ToolCall,
    ToolResult,
)
from .embedding import EmbeddingType
from .memory import (
    COLUMN_TYPES,
    NULLABLE_COLUMNS,
    ColumnType,
    MemoryCategory,
    MemoryEntry,
    MemoryHit,
    MemoryMetadata,
    MemoryRole,
)
from .tools import RecallMemoryArgs, StoreMemoryArgs, ToolOutcome

__all__ = [
    "COLUMN_TYPES",
    "NULLABLE_COLUMNS",
    # Conversation
    "ChatMessage",
    "ColumnType",
    "ConversationTurn",
    # Embedding
    "EmbeddingType",
    "GameUpdate",
    "GenerationResult",
    # Memory
    "MemoryCategory",
    "MemoryEntry",
    "MemoryHit",
    "MemoryMetadata",
    "MemoryRole",
    # Tools
    "RecallMemoryArgs",
    "Speaker",
    "StoreMemoryArgs",
    "ToolCall",
    "ToolOutcome",
    "ToolResult",
]
