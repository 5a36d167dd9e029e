"""Long-term memory entry models.

A ``MemoryEntry`` is flattened into a fixed set of top-level columns before it
reaches a vector store so that every tag is individually filterable. The
column set and its types are fixed here; stores persist them as the schema of
a collection when its first entry is written.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from narrative_memory.domain.models.utils import from_epoch_seconds, to_epoch_seconds, utc_now


class MemoryRole(str, Enum):
    """Who authored a memory."""

    NARRATOR = "narrator"
    SYSTEM = "system"


class MemoryCategory(str, Enum):
    """What kind of narrative fact a memory records."""

    NARRATION = "narration"  # dialogue and actions
    EVENT = "event"  # something concrete that happened
    DESCRIPTION = "description"  # a place, NPC or object
    CONCEPT = "concept"  # lore, world rules, abstract relations


class ColumnType(str, Enum):
    """Storage types of flattened memory columns."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    VECTOR = "vector"


COLUMN_TYPES: dict[str, ColumnType] = {
    "role": ColumnType.STRING,
    "content": ColumnType.STRING,
    "timestamp": ColumnType.FLOAT,
    "turn": ColumnType.INTEGER,
    "category": ColumnType.STRING,
    "important_fact": ColumnType.BOOLEAN,
    "fact_summary": ColumnType.STRING,
    "npc": ColumnType.STRING,
    "location": ColumnType.STRING,
    "present_characters": ColumnType.STRING,  # JSON array text, exact-match only
    "embedding": ColumnType.VECTOR,
}

NULLABLE_COLUMNS: frozenset[str] = frozenset({"fact_summary", "npc", "location"})


def encode_characters(characters: list[str] | tuple[str, ...]) -> str:
    """Serialize an ordered character list to the text stored in its column."""
    return json.dumps(list(characters), ensure_ascii=False)


def decode_characters(value: str | None) -> list[str]:
    if not value:
        return []
    return list(json.loads(value))


class MemoryMetadata(BaseModel):
    """Structured tags attached to a memory when it is written."""

    category: MemoryCategory
    important_fact: bool = False
    fact_summary: str | None = None
    npc: str | None = None
    location: str | None = None
    present_characters: list[str] = Field(default_factory=list)


class MemoryEntry(BaseModel):
    """The unit of long-term memory. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    role: MemoryRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    turn: int = Field(ge=0)
    category: MemoryCategory
    important_fact: bool = False
    fact_summary: str | None = None
    npc: str | None = None
    location: str | None = None
    present_characters: tuple[str, ...] = ()
    embedding: tuple[float, ...] = Field(default=(), repr=False)

    @classmethod
    def build(
        cls,
        role: MemoryRole,
        content: str,
        turn: int,
        metadata: MemoryMetadata,
        embedding: list[float],
        timestamp: datetime | None = None,
    ) -> "MemoryEntry":
        """Assemble an entry from content, tags and its document embedding."""
        return cls(
            role=role,
            content=content,
            timestamp=timestamp or utc_now(),
            turn=turn,
            category=metadata.category,
            important_fact=metadata.important_fact,
            fact_summary=metadata.fact_summary,
            npc=metadata.npc,
            location=metadata.location,
            present_characters=tuple(metadata.present_characters),
            embedding=tuple(embedding),
        )

    @property
    def dimension(self) -> int:
        return len(self.embedding)

    def to_row(self) -> dict[str, Any]:
        """Flatten into the fixed column set. Unset optional fields are written as None."""
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": to_epoch_seconds(self.timestamp),
            "turn": self.turn,
            "category": self.category.value,
            "important_fact": self.important_fact,
            "fact_summary": self.fact_summary,
            "npc": self.npc,
            "location": self.location,
            "present_characters": encode_characters(self.present_characters),
            "embedding": [float(x) for x in self.embedding],
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MemoryEntry":
        """Rebuild an entry from a stored row."""
        return cls(
            role=MemoryRole(row["role"]),
            content=row["content"],
            timestamp=from_epoch_seconds(float(row["timestamp"])),
            turn=int(row["turn"]),
            category=MemoryCategory(row["category"]),
            important_fact=bool(row.get("important_fact", False)),
            fact_summary=row.get("fact_summary"),
            npc=row.get("npc"),
            location=row.get("location"),
            present_characters=tuple(decode_characters(row.get("present_characters"))),
            embedding=tuple(row.get("embedding") or ()),
        )


class MemoryHit(BaseModel):
    """A search result: an entry and its distance from the query vector."""

    model_config = ConfigDict(frozen=True)

    entry: MemoryEntry
    distance: float

    def to_summary(self) -> dict[str, Any]:
        """Serializable view without the embedding, as handed to tools and clients."""
        entry = self.entry
        return {
            "content": entry.content,
            "category": entry.category.value,
            "turn": entry.turn,
            "npc": entry.npc,
            "location": entry.location,
            "important_fact": entry.important_fact,
            "fact_summary": entry.fact_summary,
            "present_characters": list(entry.present_characters),
            "timestamp": entry.timestamp.isoformat(),
            "distance": round(self.distance, 6),
        }
