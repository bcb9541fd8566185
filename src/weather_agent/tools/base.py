"""
Base classes for tools.

A tool declares a JSON Schema for its arguments. The schema is closed
(``additionalProperties: false``) unless the tool opens it explicitly, so
arguments a tool cannot accept fail validation instead of reaching
``execute``.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from ..llm.base import ToolDefinition


@dataclass
class ToolResult:
    """Result from a tool execution."""

    success: bool
    output: str = ""
    data: Any = None
    error: str | None = None


class BaseTool(ABC):
    """Base class for tools the model can call by name."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name the model uses to call the tool."""

    @property
    @abstractmethod
    def description(self) -> str:
        """What the tool does, shown to the model."""

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema of the tool's arguments."""

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Run the tool with validated arguments."""

    def get_parameters_schema(self) -> dict[str, Any]:
        schema = dict(self.parameters)
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        schema.setdefault("additionalProperties", False)
        return schema

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.get_parameters_schema(),
        )


def describe_http_error(error: httpx.HTTPStatusError) -> str:
    """Status and upstream body of a failed response.

    The request URL is left out: it can carry credentials in its query.
    """
    response = error.response
    try:
        body = json.dumps(response.json())
    except ValueError:
        body = response.text[:200]
    return f"HTTP {response.status_code}: {body}"
