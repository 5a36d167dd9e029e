"""Argument and result models for the memory tools exposed to the generation service."""

from typing import Any

from pydantic import BaseModel, Field

from narrative_memory.domain.models.memory import MemoryCategory, MemoryMetadata


class StoreMemoryArgs(BaseModel):
    """Input of the ``store_memory`` tool."""

    content: str = Field(min_length=1)
    category: MemoryCategory
    important_fact: bool = False
    fact_summary: str | None = None
    npc: str | None = None
    location: str | None = None
    present_characters: list[str] = Field(default_factory=list)

    def to_metadata(self) -> MemoryMetadata:
        return MemoryMetadata(
            category=self.category,
            important_fact=self.important_fact,
            fact_summary=self.fact_summary,
            npc=self.npc,
            location=self.location,
            present_characters=self.present_characters,
        )


class RecallMemoryArgs(BaseModel):
    """Input of the ``recall_memory`` tool."""

    query: str
    max_results: int | None = Field(default=None, ge=1, le=50)
    category: MemoryCategory | None = None
    npc: str | None = None
    location: str | None = None
    important_fact: bool | None = None
    turn_min: int | None = Field(default=None, ge=0)
    turn_max: int | None = Field(default=None, ge=0)

    def to_filters(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "npc": self.npc,
            "location": self.location,
            "important_fact": self.important_fact,
            "turn_min": self.turn_min,
            "turn_max": self.turn_max,
        }


class ToolOutcome(BaseModel):
    """Payload returned to the generation service. Failures are data, never exceptions."""

    success: bool
    message: str | None = None
    entries: list[dict[str, Any]] | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
