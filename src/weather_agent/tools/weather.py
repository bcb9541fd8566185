"""
Current weather tool using the OpenWeather API.
"""

import json
import re
from typing import Any

import httpx
import structlog

from .base import BaseTool, ToolResult, describe_http_error
from .location import GetLocationTool

logger = structlog.get_logger()

CURRENT_LOCATION = "current"


class GetCurrentWeatherTool(BaseTool):
    """Tool for fetching current weather for a city.

    An empty city name, or "current", means the user's own location,
    which is resolved through the location tool first.
    """

    def __init__(
        self,
        api_key: str = "",
        api_url: str = "https://api.openweathermap.org/data/2.5/weather",
        units: str = "metric",
        location_tool: GetLocationTool | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.units = units
        self.location_tool = location_tool or GetLocationTool(transport=transport)
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "getCurrentWeather"

    @property
    def description(self) -> str:
        return (
            "Get the current weather. Leave cityName empty or use 'current' "
            "to get weather for user's current location."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "cityName": {
                    "type": "string",
                    "description": (
                        "Optional: The name of the city to get weather for. "
                        "Leave empty to use current location."
                    ),
                },
            },
            "required": [],
        }

    async def execute(self, cityName: str | None = None) -> ToolResult:  # noqa: N803
        """Fetch current weather for a city or the current location."""
        city = clean_city_name(cityName)

        if not city or city.lower() == CURRENT_LOCATION:
            location = await self.location_tool.execute()
            if not location.success:
                return location
            city = location.output
            logger.info("Using current location", city=city)

        try:
            data = await self._fetch(city)
        except httpx.HTTPStatusError as e:
            reason = describe_http_error(e)
            logger.error("Weather lookup error", city=city, error=reason)
            return ToolResult(
                success=False,
                output="",
                error=f"Failed to fetch weather data for {city}: {reason}",
            )
        except httpx.RequestError as e:
            logger.error("Weather service unreachable", city=city, error_type=type(e).__name__)
            return ToolResult(
                success=False,
                output="",
                error=f"Failed to reach the weather service for {city}: {type(e).__name__}",
            )
        except ValueError as e:
            logger.error("Weather lookup error", city=city, error=str(e))
            return ToolResult(
                success=False,
                output="",
                error=f"Weather service returned an invalid response for {city}",
            )

        return ToolResult(
            success=True,
            output=json.dumps(data),
            data=data,
        )

    async def _fetch(self, city: str) -> dict[str, Any]:
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.get(
                self.api_url,
                params={
                    "q": city,
                    "appid": self.api_key,
                    "units": self.units,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()


def clean_city_name(city: str | None) -> str:
    """Strip quotes and surrounding whitespace the model sometimes adds."""
    if not city:
        return ""
    return re.sub(r"['\"]+", "", city).strip()
