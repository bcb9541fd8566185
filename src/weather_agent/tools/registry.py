"""
Tool registry for managing available tools.

Tools are looked up by the name the model sends back; arguments are
validated against the tool's JSON Schema before the tool runs.
"""

import asyncio
import json
from typing import Any

import jsonschema
import structlog

from ..config import Settings, get_settings
from ..exceptions import (
    DuplicateToolError,
    ToolArgumentValidationError,
    ToolInvocationError,
    UnknownToolError,
)
from ..llm.base import ToolDefinition
from .base import BaseTool

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for managing tools, in registration order."""

    def __init__(self):
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool. Names must be unique."""
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        self._tools[tool.name] = tool
        logger.info("Tool registered", tool_name=tool.name)

    def unregister(self, name: str) -> None:
        """Unregister a tool."""
        if name in self._tools:
            del self._tools[name]
            logger.info("Tool unregistered", tool_name=name)

    def get(self, name: str) -> BaseTool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def resolve(self, name: str) -> BaseTool:
        """Get a tool by name, failing if it is not registered."""
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def catalog(self) -> list[BaseTool]:
        """All registered tools in registration order."""
        return list(self._tools.values())

    def get_definitions(self) -> list[ToolDefinition]:
        """Get all tool definitions for the LLM."""
        return [tool.to_definition() for tool in self._tools.values()]

    def validate_arguments(self, tool: BaseTool, raw_arguments: Any) -> dict[str, Any]:
        """Decode and validate raw arguments against the tool's schema."""
        arguments = raw_arguments
        if arguments is None or arguments == "":
            arguments = {}
        elif isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError as e:
                raise ToolArgumentValidationError(
                    tool.name, f"Arguments are not valid JSON: {e.msg}"
                ) from e

        if not isinstance(arguments, dict):
            raise ToolArgumentValidationError(
                tool.name, f"Arguments must be an object, got {type(arguments).__name__}"
            )

        try:
            jsonschema.validate(arguments, tool.get_parameters_schema())
        except jsonschema.ValidationError as e:
            raise ToolArgumentValidationError(
                tool.name, f"Schema validation failed: {e.message}"
            ) from e
        except jsonschema.SchemaError as e:
            raise ToolArgumentValidationError(
                tool.name, f"Tool has an invalid parameter schema: {e.message}"
            ) from e

        return arguments

    async def invoke(
        self,
        name: str,
        raw_arguments: Any,
        timeout: float | None = None,
    ) -> str:
        """Resolve, validate and execute a tool, returning its text output.

        Raises UnknownToolError, ToolArgumentValidationError or
        ToolInvocationError.
        """
        tool = self.resolve(name)
        arguments = self.validate_arguments(tool, raw_arguments)

        logger.info("Executing tool", tool_name=name, arguments=arguments)
        try:
            result = await asyncio.wait_for(tool.execute(**arguments), timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.warning("Tool timed out", tool_name=name, timeout=timeout)
            raise ToolInvocationError(name, f"Tool '{name}' timed out after {timeout}s") from e
        except Exception as e:
            logger.error("Tool execution error", tool_name=name, error=str(e))
            raise ToolInvocationError(name, str(e) or type(e).__name__) from e

        logger.info("Tool executed", tool_name=name, success=result.success)
        if not result.success:
            raise ToolInvocationError(name, result.error or f"Tool '{name}' failed")
        return result.output


def build_tool_registry(settings: Settings | None = None) -> ToolRegistry:
    """Create a registry with the location and weather tools."""
    from .location import GetLocationTool
    from .weather import GetCurrentWeatherTool

    settings = settings or get_settings()
    registry = ToolRegistry()

    location = GetLocationTool(api_url=settings.location_api_url)
    registry.register(location)
    registry.register(GetCurrentWeatherTool(
        api_key=settings.open_weather_api_key,
        api_url=settings.weather_api_url,
        units=settings.weather_units,
        location_tool=location,
    ))

    return registry
