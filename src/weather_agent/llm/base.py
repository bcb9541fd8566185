"""
Base classes for LLM providers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Literal


@dataclass
class ToolDefinition:
    """Definition of a tool that the LLM can use."""

    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class ToolCall:
    """A tool call made by the LLM.

    ``arguments`` is whatever the provider sent: normally a decoded dict,
    but the raw string when the model produced invalid JSON.
    """

    id: str
    name: str
    arguments: dict[str, Any] | str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}


@dataclass
class LLMMessage:
    """A message in the conversation."""

    role: Literal["user", "assistant", "system", "tool"]
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire format used by the API."""
        return {
            "role": self.role,
            "content": self.content,
            "toolCalls": [tc.to_dict() for tc in self.tool_calls or []],
            "toolCallId": self.tool_call_id,
            "name": self.name,
        }


@dataclass
class LLMResponse:
    """Response from an LLM."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    stop_reason: str | None = None
    raw_response: Any = None

    def to_message(self) -> LLMMessage:
        """Convert to an assistant message for the history."""
        return LLMMessage(
            role="assistant",
            content=self.content,
            tool_calls=list(self.tool_calls) or None,
        )


@dataclass
class StreamChunk:
    """One item of a streamed response.

    Intermediate chunks carry a text ``delta``; the last chunk carries the
    complete ``response`` and no delta.
    """

    delta: str = ""
    response: LLMResponse | None = None

    @property
    def is_final(self) -> bool:
        return self.response is not None


class BaseLLM(ABC):
    """Base class for LLM providers."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.4,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.temperature = temperature

    @abstractmethod
    async def generate(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        system_prompt: str | None = None,
    ) -> LLMResponse:
        """Generate a response from the LLM."""
        pass

    @abstractmethod
    def stream(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        system_prompt: str | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a response from the LLM, ending with a final chunk."""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name."""
        pass
