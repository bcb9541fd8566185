"""
Tools module for agent capabilities.
"""

from .base import BaseTool, ToolResult, describe_http_error
from .registry import ToolRegistry, build_tool_registry
from .location import GetLocationTool
from .weather import GetCurrentWeatherTool

__all__ = [
    "BaseTool",
    "ToolResult",
    "describe_http_error",
    "ToolRegistry",
    "build_tool_registry",
    "GetLocationTool",
    "GetCurrentWeatherTool",
]
