"""
Tests for the agent loop state machine.
"""

import asyncio
import json

import pytest

from conftest import FunctionTool, ScriptedLLM, answer, tool_call
from weather_agent.agent.loop import AgentLoop, LoopState, tool_error_payload
from weather_agent.exceptions import (
    AgentLoopExceededError,
    ModelInvocationError,
    UnknownToolError,
)
from weather_agent.llm.base import LLMMessage, LLMResponse, StreamChunk, ToolCall
from weather_agent.tools.base import ToolResult
from weather_agent.tools.registry import ToolRegistry


def _history(text: str = "What's the weather in Paris?") -> list[LLMMessage]:
    return [
        LLMMessage(role="system", content="You are helpful."),
        LLMMessage(role="user", content=text),
    ]


@pytest.mark.asyncio
async def test_final_answer_without_tools(weather_registry):
    """A plain answer ends the loop after one model call."""
    llm = ScriptedLLM([answer("Goodbye!")])
    loop = AgentLoop(llm, weather_registry)

    result = await loop.run(_history("exit"))

    assert result.content == "Goodbye!"
    assert result.iterations == 1
    assert [m.role for m in result.messages] == ["assistant"]
    assert result.messages[0].tool_calls is None


@pytest.mark.asyncio
async def test_tool_call_then_answer(weather_registry):
    """A tool call is executed and its result fed back to the model."""
    llm = ScriptedLLM([
        tool_call("getCurrentWeather", {"cityName": "Paris"}),
        answer("It is 14 degrees with light rain in Paris."),
    ])
    loop = AgentLoop(llm, weather_registry)

    result = await loop.run(_history())

    assert result.content == "It is 14 degrees with light rain in Paris."
    assert result.iterations == 2
    assert [m.role for m in result.messages] == ["assistant", "tool", "assistant"]

    tool_msg = result.messages[1]
    assert tool_msg.tool_call_id == "call_1"
    assert tool_msg.name == "getCurrentWeather"
    assert json.loads(tool_msg.content)["name"] == "Paris"

    # Second model call sees the tool result
    assert llm.calls[1][-1].role == "tool"
    assert len(llm.calls[1]) == 4


@pytest.mark.asyncio
async def test_catalog_passed_on_every_call(weather_registry):
    """The model receives the tool definitions on each invocation."""
    llm = ScriptedLLM([
        tool_call("getCurrentWeather", {"cityName": "Paris"}),
        answer("Done"),
    ])
    loop = AgentLoop(llm, weather_registry)

    await loop.run(_history())

    assert len(llm.tools_seen) == 2
    for tools in llm.tools_seen:
        assert [t.name for t in tools] == ["getCurrentWeather"]


@pytest.mark.asyncio
async def test_unknown_tool_becomes_error_result(weather_registry):
    """An unknown tool name yields an error tool-result and the loop continues."""
    llm = ScriptedLLM([
        tool_call("getStockPrice", {"ticker": "ACME"}),
        answer("Sorry, I can't look up stock prices."),
    ])
    loop = AgentLoop(llm, weather_registry)

    result = await loop.run(_history())

    payload = json.loads(result.messages[1].content)
    assert payload["type"] == "UnknownToolError"
    assert payload["tool"] == "getStockPrice"
    assert result.content.startswith("Sorry")


@pytest.mark.asyncio
async def test_invalid_arguments_become_error_result(weather_registry):
    """Arguments that fail schema validation are reported to the model."""
    llm = ScriptedLLM([
        tool_call("getCurrentWeather", {"cityName": 42}),
        tool_call("getCurrentWeather", {"cityName": "Paris"}, call_id="call_2"),
        answer("Paris is rainy."),
    ])
    loop = AgentLoop(llm, weather_registry)

    result = await loop.run(_history())

    first_result = json.loads(result.messages[1].content)
    assert first_result["type"] == "ToolArgumentValidationError"
    assert result.messages[3].tool_call_id == "call_2"
    assert "Paris" in result.messages[3].content
    assert result.iterations == 3


@pytest.mark.asyncio
async def test_malformed_json_arguments(weather_registry):
    """Raw argument strings that are not JSON are rejected, not fatal."""
    llm = ScriptedLLM([
        tool_call("getCurrentWeather", '{"cityName": "Par'),
        answer("Let me try again later."),
    ])
    loop = AgentLoop(llm, weather_registry)

    result = await loop.run(_history())

    assert json.loads(result.messages[1].content)["type"] == "ToolArgumentValidationError"


@pytest.mark.asyncio
async def test_always_failing_tool_hits_iteration_limit(failing_tool):
    """A tool that always fails cannot keep the loop running forever."""
    registry = ToolRegistry()
    registry.register(failing_tool)
    llm = ScriptedLLM([tool_call("broken")])
    loop = AgentLoop(llm, registry, max_iterations=3)

    with pytest.raises(AgentLoopExceededError) as exc_info:
        await loop.run(_history())

    assert exc_info.value.max_iterations == 3
    assert len(llm.calls) == 3


@pytest.mark.asyncio
async def test_tool_exception_becomes_error_result():
    """A tool raising an exception is reported as a tool error."""
    async def explode() -> ToolResult:
        raise ConnectionError("connection reset")

    registry = ToolRegistry()
    registry.register(FunctionTool(name="getLocation", handler=explode))
    llm = ScriptedLLM([tool_call("getLocation"), answer("Location is unavailable.")])
    loop = AgentLoop(llm, registry)

    result = await loop.run(_history())

    payload = json.loads(result.messages[1].content)
    assert payload["type"] == "ToolInvocationError"
    assert "connection reset" in payload["error"]


@pytest.mark.asyncio
async def test_tool_timeout_becomes_error_result():
    """A slow tool is cut off and reported as a failure."""
    async def slow() -> ToolResult:
        await asyncio.sleep(5)
        return ToolResult(success=True, output="too late")

    registry = ToolRegistry()
    registry.register(FunctionTool(name="getLocation", handler=slow))
    llm = ScriptedLLM([tool_call("getLocation"), answer("Timed out, sorry.")])
    loop = AgentLoop(llm, registry, tool_timeout=0.05)

    result = await loop.run(_history())

    payload = json.loads(result.messages[1].content)
    assert payload["type"] == "ToolInvocationError"
    assert "timed out" in payload["error"]
    assert result.content == "Timed out, sorry."


@pytest.mark.asyncio
async def test_tool_calls_run_in_order():
    """Multiple tool calls in one assistant message run in the given order."""
    order: list[str] = []

    async def first() -> ToolResult:
        order.append("getLocation")
        return ToolResult(success=True, output="Bogota")

    async def second(cityName: str = "") -> ToolResult:  # noqa: N803
        order.append("getCurrentWeather")
        return ToolResult(success=True, output="{}")

    registry = ToolRegistry()
    registry.register(FunctionTool(name="getLocation", handler=first))
    registry.register(FunctionTool(name="getCurrentWeather", handler=second))

    llm = ScriptedLLM([
        LLMResponse(content="", tool_calls=[
            ToolCall(id="a", name="getLocation", arguments={}),
            ToolCall(id="b", name="getCurrentWeather", arguments={}),
        ]),
        answer("Done"),
    ])
    loop = AgentLoop(llm, registry)

    result = await loop.run(_history())

    assert order == ["getLocation", "getCurrentWeather"]
    assert [m.tool_call_id for m in result.messages if m.role == "tool"] == ["a", "b"]


@pytest.mark.asyncio
async def test_model_error_is_wrapped(weather_registry):
    """Provider exceptions fail the turn as ModelInvocationError."""
    async def boom(messages):
        raise RuntimeError("connection refused")

    loop = AgentLoop(ScriptedLLM([boom]), weather_registry)

    with pytest.raises(ModelInvocationError, match="connection refused"):
        await loop.run(_history())


@pytest.mark.asyncio
async def test_model_timeout(weather_registry):
    """A model call exceeding the timeout fails the turn."""
    loop = AgentLoop(ScriptedLLM([answer("late")], delay=1.0), weather_registry, model_timeout=0.05)

    with pytest.raises(ModelInvocationError, match="did not respond"):
        await loop.run(_history())


@pytest.mark.asyncio
async def test_messages_emitted_before_failure(weather_registry):
    """Messages produced before a model failure reach the sink."""
    async def boom(messages):
        raise RuntimeError("model went away")

    llm = ScriptedLLM([tool_call("getCurrentWeather", {"cityName": "Paris"}), boom])
    loop = AgentLoop(llm, weather_registry)
    sink: list[LLMMessage] = []

    async def collect(message: LLMMessage) -> None:
        sink.append(message)

    with pytest.raises(ModelInvocationError):
        await loop.run(_history(), on_message=collect)

    assert [m.role for m in sink] == ["assistant", "tool"]


@pytest.mark.asyncio
async def test_streaming_accumulates_chunks(weather_registry):
    """Streamed deltas are forwarded and the decision uses the full message."""
    llm = ScriptedLLM([
        tool_call("getCurrentWeather", {"cityName": "Paris"}),
        answer("Light rain in Paris today"),
    ])
    loop = AgentLoop(llm, weather_registry, streaming=True)
    deltas: list[str] = []

    async def on_delta(text: str) -> None:
        deltas.append(text)

    result = await loop.run(_history(), on_text_delta=on_delta)

    assert result.content == "Light rain in Paris today"
    assert "".join(deltas).strip() == "Light rain in Paris today"
    assert [m.role for m in result.messages] == ["assistant", "tool", "assistant"]


@pytest.mark.asyncio
async def test_stream_without_final_chunk(weather_registry):
    """A stream that never completes the message is a model failure."""
    class TruncatedLLM(ScriptedLLM):
        async def stream(self, messages, tools=None, system_prompt=None):
            yield StreamChunk(delta="partial")

    loop = AgentLoop(TruncatedLLM([answer("x")]), weather_registry, streaming=True)

    with pytest.raises(ModelInvocationError, match="without a complete response"):
        await loop.run(_history())


def test_invalid_max_iterations(weather_registry):
    """The iteration limit must be positive."""
    with pytest.raises(ValueError):
        AgentLoop(ScriptedLLM([answer("x")]), weather_registry, max_iterations=0)


def test_tool_error_payload():
    """Tool errors are serialized as JSON objects."""
    payload = json.loads(tool_error_payload(UnknownToolError("nope")))

    assert payload == {
        "error": "Tool 'nope' not found",
        "tool": "nope",
        "type": "UnknownToolError",
    }


def test_loop_state_values():
    """Loop states have stable string values for logging."""
    assert LoopState.AWAITING_MODEL.value == "awaiting_model"
    assert LoopState.FINAL_ANSWER.value == "final_answer"


@pytest.mark.asyncio
async def test_state_transitions_recorded(weather_registry):
    """A tool round trip walks every state before the final answer."""
    llm = ScriptedLLM([
        tool_call("getCurrentWeather", {"cityName": "Paris"}),
        answer("Rainy."),
    ])

    result = await AgentLoop(llm, weather_registry).run(_history())

    assert result.states == [
        LoopState.AWAITING_MODEL,
        LoopState.TOOL_CALLS_REQUESTED,
        LoopState.EXECUTING_TOOLS,
        LoopState.AWAITING_MODEL,
        LoopState.FINAL_ANSWER,
    ]


@pytest.mark.asyncio
async def test_direct_answer_states(weather_registry):
    """A plain answer goes straight to the final state."""
    result = await AgentLoop(ScriptedLLM([answer("Hi")]), weather_registry).run(_history("hello"))

    assert result.states == [LoopState.AWAITING_MODEL, LoopState.FINAL_ANSWER]


@pytest.mark.asyncio
async def test_unexpected_argument_is_validation_error():
    """Arguments the tool does not declare are rejected before it runs."""
    calls: list[dict] = []

    async def locate(**kwargs) -> ToolResult:
        calls.append(kwargs)
        return ToolResult(success=True, output="Bogota")

    registry = ToolRegistry()
    registry.register(FunctionTool(name="getLocation", handler=locate))
    llm = ScriptedLLM([tool_call("getLocation", {"ip": "1.2.3.4"}), answer("Could not locate you.")])

    result = await AgentLoop(llm, registry).run(_history())

    payload = json.loads(result.messages[1].content)
    assert payload["type"] == "ToolArgumentValidationError"
    assert calls == []
