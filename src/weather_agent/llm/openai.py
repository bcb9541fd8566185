"""
OpenAI GPT LLM provider (also works with Ollama, OpenRouter and compatible APIs).
"""

import json
from typing import Any, AsyncIterator

import openai
import structlog

from .base import BaseLLM, LLMMessage, LLMResponse, StreamChunk, ToolCall, ToolDefinition

logger = structlog.get_logger()


def _parse_arguments(raw: str | None) -> dict[str, Any] | str:
    """Decode tool-call arguments, keeping the raw text if it is not JSON."""
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Tool call arguments are not valid JSON", arguments=raw)
        return raw


class OpenAILLM(BaseLLM):
    """OpenAI-compatible chat completions provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.4,
        provider: str = "openai",
    ):
        super().__init__(api_key, model, base_url, max_tokens, temperature)
        self._provider = provider
        self.client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
        )

    @property
    def provider_name(self) -> str:
        return self._provider

    def _convert_messages(self, messages: list[LLMMessage]) -> list[dict[str, Any]]:
        """Convert LLMMessages to OpenAI format."""
        converted = []

        for msg in messages:
            if msg.role == "tool":
                converted.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id,
                    "content": msg.content,
                })
            elif msg.role == "assistant" and msg.tool_calls:
                tool_calls = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": (
                                tc.arguments if isinstance(tc.arguments, str)
                                else json.dumps(tc.arguments)
                            ),
                        },
                    }
                    for tc in msg.tool_calls
                ]
                converted.append({
                    "role": "assistant",
                    "content": msg.content or None,
                    "tool_calls": tool_calls,
                })
            else:
                converted.append({
                    "role": msg.role,
                    "content": msg.content,
                })

        return converted

    def _convert_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        """Convert ToolDefinitions to OpenAI format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]

    def _build_kwargs(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None,
        system_prompt: str | None,
    ) -> dict[str, Any]:
        converted_messages = self._convert_messages(messages)

        if system_prompt:
            converted_messages.insert(0, {"role": "system", "content": system_prompt})

        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": converted_messages,
        }

        if tools:
            kwargs["tools"] = self._convert_tools(tools)

        return kwargs

    async def generate(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        system_prompt: str | None = None,
    ) -> LLMResponse:
        """Generate a response in one request."""
        kwargs = self._build_kwargs(messages, tools, system_prompt)

        try:
            response = await self.client.chat.completions.create(**kwargs)

            choice = response.choices[0]
            message = choice.message

            tool_calls = [
                ToolCall(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=_parse_arguments(tc.function.arguments),
                )
                for tc in message.tool_calls or []
            ]

            return LLMResponse(
                content=message.content or "",
                tool_calls=tool_calls,
                input_tokens=response.usage.prompt_tokens if response.usage else 0,
                output_tokens=response.usage.completion_tokens if response.usage else 0,
                model=response.model,
                stop_reason=choice.finish_reason,
                raw_response=response,
            )

        except openai.APIError as e:
            logger.error("OpenAI API error", provider=self._provider, error=str(e))
            raise

    async def stream(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        system_prompt: str | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a response, accumulating tool-call fragments by index."""
        kwargs = self._build_kwargs(messages, tools, system_prompt)
        kwargs["stream"] = True

        content_parts: list[str] = []
        partial_calls: dict[int, dict[str, str]] = {}
        finish_reason = None
        model = self.model

        try:
            stream = await self.client.chat.completions.create(**kwargs)

            async for chunk in stream:  # type: ignore
                model = chunk.model or model
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta

                if delta.content:
                    content_parts.append(delta.content)
                    yield StreamChunk(delta=delta.content)

                for tc in delta.tool_calls or []:
                    call = partial_calls.setdefault(tc.index, {"id": "", "name": "", "arguments": ""})
                    if tc.id:
                        call["id"] = tc.id
                    if tc.function and tc.function.name:
                        call["name"] += tc.function.name
                    if tc.function and tc.function.arguments:
                        call["arguments"] += tc.function.arguments

                if choice.finish_reason:
                    finish_reason = choice.finish_reason

        except openai.APIError as e:
            logger.error("OpenAI streaming error", provider=self._provider, error=str(e))
            raise

        tool_calls = [
            ToolCall(
                id=call["id"] or f"call_{index}",
                name=call["name"],
                arguments=_parse_arguments(call["arguments"]),
            )
            for index, call in sorted(partial_calls.items())
        ]

        yield StreamChunk(response=LLMResponse(
            content="".join(content_parts),
            tool_calls=tool_calls,
            model=model,
            stop_reason=finish_reason,
        ))
