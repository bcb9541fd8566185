"""
Geolocation tool using the ipapi.co IP lookup.
"""

from typing import Any

import httpx
import structlog

from .base import BaseTool, ToolResult, describe_http_error

logger = structlog.get_logger()


class GetLocationTool(BaseTool):
    """Tool for finding the user's current city from their IP address."""

    def __init__(
        self,
        api_url: str = "https://ipapi.co/json/",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "getLocation"

    @property
    def description(self) -> str:
        return "Get the user's current location (city name)."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {},
        }

    async def lookup(self) -> dict[str, Any]:
        """Fetch the raw ipapi payload."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(self.api_url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()

        # ipapi reports quota and lookup problems with a 200 and an error flag
        if not isinstance(data, dict) or data.get("error"):
            reason = data.get("reason", "unknown error") if isinstance(data, dict) else "bad payload"
            raise ValueError(f"Location lookup failed: {reason}")

        return data

    async def execute(self) -> ToolResult:
        """Look up the current city."""
        try:
            data = await self.lookup()
        except httpx.HTTPStatusError as e:
            reason = describe_http_error(e)
            logger.error("Location lookup error", error=reason)
            return ToolResult(
                success=False,
                output="",
                error=f"Failed to fetch location: {reason}",
            )
        except httpx.RequestError as e:
            logger.error("Location service unreachable", error_type=type(e).__name__)
            return ToolResult(
                success=False,
                output="",
                error=f"Failed to fetch location: {type(e).__name__}",
            )
        except ValueError as e:
            logger.error("Location lookup error", error=str(e))
            return ToolResult(
                success=False,
                output="",
                error=f"Failed to fetch location: {str(e)}",
            )

        city = data.get("city")
        if not city:
            return ToolResult(
                success=False,
                output="",
                error="Location lookup returned no city",
            )

        return ToolResult(success=True, output=city, data=data)
