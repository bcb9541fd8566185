"""
Shared test fixtures.
"""

import asyncio
import copy
from typing import Any, AsyncIterator, Awaitable, Callable

import pytest

from weather_agent.config import Settings
from weather_agent.llm.base import (
    BaseLLM,
    LLMMessage,
    LLMResponse,
    StreamChunk,
    ToolCall,
    ToolDefinition,
)
from weather_agent.tools.base import BaseTool, ToolResult
from weather_agent.tools.registry import ToolRegistry


class ScriptedLLM(BaseLLM):
    """LLM double that replays a fixed list of responses.

    Each script entry is an LLMResponse, or an async callable taking the
    messages and returning one. The last entry repeats once the script runs
    out.
    """

    def __init__(self, script: list[Any], delay: float = 0.0):
        super().__init__(api_key="test", model="scripted")
        self.script = list(script)
        self.delay = delay
        self.calls: list[list[LLMMessage]] = []
        self.tools_seen: list[list[ToolDefinition] | None] = []

    @property
    def provider_name(self) -> str:
        return "scripted"

    async def _next(self, messages: list[LLMMessage], tools) -> LLMResponse:
        self.calls.append(copy.deepcopy(messages))
        self.tools_seen.append(tools)
        if self.delay:
            await asyncio.sleep(self.delay)
        entry = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if callable(entry):
            return await entry(messages)
        return copy.deepcopy(entry)

    async def generate(self, messages, tools=None, system_prompt=None) -> LLMResponse:
        return await self._next(messages, tools)

    async def stream(self, messages, tools=None, system_prompt=None) -> AsyncIterator[StreamChunk]:
        response = await self._next(messages, tools)
        for word in response.content.split(" "):
            if word:
                yield StreamChunk(delta=word + " ")
        yield StreamChunk(response=response)


def tool_call(name: str, arguments: Any = None, call_id: str = "call_1") -> LLMResponse:
    """An assistant response requesting a single tool."""
    return LLMResponse(
        content="",
        tool_calls=[ToolCall(id=call_id, name=name, arguments=arguments or {})],
    )


def answer(text: str) -> LLMResponse:
    """An assistant response with a final answer."""
    return LLMResponse(content=text)


class FunctionTool(BaseTool):
    """Tool double wrapping an async function."""

    def __init__(
        self,
        name: str,
        handler: Callable[..., Awaitable[ToolResult]],
        properties: dict[str, Any] | None = None,
        required: list[str] | None = None,
        description: str = "",
    ):
        self._name = name
        self._handler = handler
        self._properties = properties or {}
        self._required = required or []
        self._description = description

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": self._properties,
            "required": self._required,
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        return await self._handler(**kwargs)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        streaming=False,
        max_tool_iterations=5,
        model_timeout_seconds=5,
        tool_timeout_seconds=5,
    )


@pytest.fixture
def weather_registry() -> ToolRegistry:
    """Registry with a fake weather tool that echoes the city."""
    async def get_weather(cityName: str = "current") -> ToolResult:  # noqa: N803
        return ToolResult(
            success=True,
            output=f'{{"name": "{cityName}", "weather": [{{"description": "light rain"}}], "main": {{"temp": 14.2}}}}',
        )

    registry = ToolRegistry()
    registry.register(FunctionTool(
        name="getCurrentWeather",
        description="Get the current weather.",
        properties={"cityName": {"type": "string", "description": "City name"}},
        handler=get_weather,
    ))
    return registry


@pytest.fixture
def make_llm() -> Callable[..., ScriptedLLM]:
    """Factory for scripted LLM doubles."""
    return ScriptedLLM


@pytest.fixture
def failing_tool() -> FunctionTool:
    """A tool that always fails."""
    async def broken() -> ToolResult:
        return ToolResult(success=False, error="upstream unavailable")

    return FunctionTool(name="broken", description="Always fails.", handler=broken)
