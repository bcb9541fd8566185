"""
Agent loop: alternate between the model and tool calls until the model
gives a plain answer.

States:
    AWAITING_MODEL -> FINAL_ANSWER (done)
    AWAITING_MODEL -> TOOL_CALLS_REQUESTED -> EXECUTING_TOOLS -> AWAITING_MODEL

Tool problems (unknown tool, bad arguments, failing or slow tool) become
tool-result messages carrying a JSON error so the model can recover. Model
problems and running past ``max_iterations`` fail the turn.
"""

import asyncio
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

import structlog

from ..exceptions import AgentLoopExceededError, ModelInvocationError, ToolError
from ..llm.base import BaseLLM, LLMMessage, LLMResponse, ToolCall, ToolDefinition
from ..tools.registry import ToolRegistry

logger = structlog.get_logger()

MessageSink = Callable[[LLMMessage], Awaitable[None]]
TextSink = Callable[[str], Awaitable[None]]


class LoopState(str, Enum):
    """States of the agent loop."""
    AWAITING_MODEL = "awaiting_model"
    TOOL_CALLS_REQUESTED = "tool_calls_requested"
    EXECUTING_TOOLS = "executing_tools"
    FINAL_ANSWER = "final_answer"


@dataclass
class AgentResult:
    """Outcome of a successful loop run."""

    content: str
    messages: list[LLMMessage] = field(default_factory=list)
    iterations: int = 0
    states: list[LoopState] = field(default_factory=list)


def tool_error_payload(error: ToolError) -> str:
    """Structured error content for a failed tool call."""
    return json.dumps({
        "error": error.message,
        "tool": error.tool_name,
        "type": type(error).__name__,
    })


class AgentLoop:
    """Drives the model through tool calls to a final answer."""

    def __init__(
        self,
        llm: BaseLLM,
        tool_registry: ToolRegistry,
        max_iterations: int = 10,
        model_timeout: float | None = 60.0,
        tool_timeout: float | None = 30.0,
        streaming: bool = False,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.llm = llm
        self.tool_registry = tool_registry
        self.max_iterations = max_iterations
        self.model_timeout = model_timeout
        self.tool_timeout = tool_timeout
        self.streaming = streaming

    async def run(
        self,
        history: list[LLMMessage],
        on_message: MessageSink | None = None,
        on_text_delta: TextSink | None = None,
    ) -> AgentResult:
        """Run the loop over ``history`` until the model answers.

        Every message the loop produces is passed to ``on_message`` as soon as
        it exists, so a failed run leaves its partial work behind.
        """
        working = list(history)
        produced: list[LLMMessage] = []

        async def emit(message: LLMMessage) -> None:
            working.append(message)
            produced.append(message)
            if on_message is not None:
                await on_message(message)

        tools = self.tool_registry.get_definitions()
        state = LoopState.AWAITING_MODEL
        states = [state]
        iterations = 0
        response: LLMResponse | None = None

        def transition(new_state: LoopState, **fields) -> None:
            nonlocal state
            state = new_state
            states.append(new_state)
            logger.debug("Agent loop state", state=new_state.value, iteration=iterations, **fields)

        while state is not LoopState.FINAL_ANSWER:
            if state is LoopState.AWAITING_MODEL:
                if iterations == self.max_iterations:
                    logger.warning("Agent loop exceeded iteration limit", max_iterations=self.max_iterations)
                    raise AgentLoopExceededError(self.max_iterations)
                iterations += 1
                response = await self._invoke_model(working, tools, on_text_delta)
                await emit(response.to_message())
                if response.tool_calls:
                    transition(LoopState.TOOL_CALLS_REQUESTED, tools=[tc.name for tc in response.tool_calls])
                else:
                    transition(LoopState.FINAL_ANSWER)

            elif state is LoopState.TOOL_CALLS_REQUESTED:
                transition(LoopState.EXECUTING_TOOLS)

            elif state is LoopState.EXECUTING_TOOLS:
                for tool_call in response.tool_calls:
                    await emit(await self._execute_tool_call(tool_call))
                transition(LoopState.AWAITING_MODEL)

        logger.info("Agent loop finished", iterations=iterations)
        return AgentResult(
            content=response.content,
            messages=produced,
            iterations=iterations,
            states=states,
        )

    async def _invoke_model(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition],
        on_text_delta: TextSink | None,
    ) -> LLMResponse:
        if self.streaming:
            call = self._drain_stream(messages, tools, on_text_delta)
        else:
            call = self.llm.generate(messages=messages, tools=tools or None)

        try:
            return await asyncio.wait_for(call, timeout=self.model_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Model invocation timed out", timeout=self.model_timeout)
            raise ModelInvocationError(
                f"Model did not respond within {self.model_timeout}s"
            ) from e
        except ModelInvocationError:
            raise
        except Exception as e:
            logger.error("Model invocation error", error=str(e))
            raise ModelInvocationError(f"Model invocation failed: {e}") from e

    async def _drain_stream(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition],
        on_text_delta: TextSink | None,
    ) -> LLMResponse:
        """Consume a streamed response into one complete response."""
        response: LLMResponse | None = None

        async for chunk in self.llm.stream(messages=messages, tools=tools or None):
            if chunk.is_final:
                response = chunk.response
            elif chunk.delta and on_text_delta is not None:
                await on_text_delta(chunk.delta)

        if response is None:
            raise ModelInvocationError("Model stream ended without a complete response")
        return response

    async def _execute_tool_call(self, tool_call: ToolCall) -> LLMMessage:
        """Run one tool call and wrap the outcome as a tool-result message."""
        try:
            content = await self.tool_registry.invoke(
                tool_call.name,
                tool_call.arguments,
                timeout=self.tool_timeout,
            )
        except ToolError as e:
            logger.warning(
                "Tool call failed",
                tool=tool_call.name,
                tool_call_id=tool_call.id,
                error_type=type(e).__name__,
                error=e.message,
            )
            content = tool_error_payload(e)

        return LLMMessage(
            role="tool",
            content=content,
            tool_call_id=tool_call.id,
            name=tool_call.name,
        )
