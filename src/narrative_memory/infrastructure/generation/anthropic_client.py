"""Anthropic Messages API adapter for the narrating model."""

import json
from typing import Any

import anthropic

from narrative_memory.core.base import AIServiceErrorDetails, ErrorLevel, ServiceErrorDetails
from narrative_memory.core.config import settings
from narrative_memory.core.decorators import with_error_handling
from narrative_memory.core.errors import AuthenticationError, GenerationError
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import ChatMessage, GenerationResult, ToolCall
from narrative_memory.services.prompts import SYSTEM_INSTRUCTION

logger = get_logger(__name__)


def to_anthropic_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Convert provider-neutral messages to Messages API content blocks."""
    converted: list[dict[str, Any]] = []
    for message in messages:
        blocks: list[dict[str, Any]] = []
        if message.text:
            blocks.append({"type": "text", "text": message.text})
        for call in message.tool_calls:
            blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.args})
        for result in message.tool_results:
            blocks.append(
                {
                    "type": "tool_result",
                    "tool_use_id": result.call_id,
                    "content": json.dumps(result.payload, ensure_ascii=False),
                    "is_error": not result.payload.get("success", True),
                }
            )
        if blocks:
            converted.append({"role": message.role, "content": blocks})
    return converted


def from_anthropic_response(response: Any) -> GenerationResult:
    texts: list[str] = []
    calls: list[ToolCall] = []
    for block in response.content:
        if block.type == "text":
            texts.append(block.text)
        elif block.type == "tool_use":
            calls.append(ToolCall(id=block.id, name=block.name, args=dict(block.input or {})))
    text = "\n".join(t for t in texts if t.strip()) or None
    return GenerationResult(text=text, tool_calls=calls)


class AnthropicGenerationService:
    """Narrates with Claude and exposes the memory tools to it."""

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        max_tokens: int | None = None,
        system: str = SYSTEM_INSTRUCTION,
        client: Any = None,
    ):
        """Initialize the generation service.

        Raises:
            AuthenticationError: If no API key is configured and no client is given
        """
        api_key = api_key or settings.anthropic_api_key
        if not api_key and client is None:
            raise AuthenticationError(
                message="Anthropic API key not found in settings",
                details=ServiceErrorDetails(
                    source="AnthropicGenerationService",
                    operation="initialization",
                    service_name="Anthropic",
                ),
            )
        self.model = model or settings.generation_model
        self.max_tokens = max_tokens or settings.generation_max_tokens
        self.system = system
        self.client: Any = client or anthropic.AsyncAnthropic(api_key=api_key)

    def _details(self, status_code: int | None = None) -> AIServiceErrorDetails:
        return AIServiceErrorDetails(
            source="AnthropicGenerationService",
            operation="generate",
            service_name="Anthropic",
            endpoint="/v1/messages",
            status_code=status_code,
            model_name=self.model,
            input_type="chat",
        )

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def generate(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> GenerationResult:
        """Request the next assistant message.

        Raises:
            GenerationError: If the API call fails
        """
        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": self.system,
            "messages": to_anthropic_messages(messages),
        }
        if tools:
            request["tools"] = tools

        try:
            response = await self.client.messages.create(**request)
        except anthropic.APIStatusError as e:
            raise GenerationError(
                f"Generation service returned {e.status_code}: {e.message}",
                details=self._details(status_code=e.status_code),
            ) from e
        except anthropic.APIError as e:
            raise GenerationError(f"Generation service unreachable: {e}", details=self._details()) from e

        result = from_anthropic_response(response)
        logger.debug(
            "Generation completed",
            model=self.model,
            stop_reason=getattr(response, "stop_reason", None),
            tool_calls=len(result.tool_calls),
        )
        return result

    async def close(self) -> None:
        await self.client.close()
