"""
LLM module for multi-provider model support.

Providers:
- Ollama (via OpenAI-compatible endpoint)
- OpenAI GPT (native SDK)
- OpenRouter (via OpenAI-compatible endpoint)
- Anthropic Claude (native SDK)
"""

from .base import BaseLLM, LLMMessage, LLMResponse, StreamChunk, ToolCall, ToolDefinition
from .anthropic import AnthropicLLM
from .openai import OpenAILLM
from .factory import create_llm

__all__ = [
    "BaseLLM",
    "LLMMessage",
    "LLMResponse",
    "StreamChunk",
    "ToolCall",
    "ToolDefinition",
    "AnthropicLLM",
    "OpenAILLM",
    "create_llm",
]
