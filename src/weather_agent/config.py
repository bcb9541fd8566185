"""
Configuration management for Weather-Agent

Uses pydantic-settings for environment variable parsing and validation.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Provider = Literal["ollama", "openai", "anthropic", "openrouter"]


class LLMConfig(BaseSettings):
    """Configuration for a single LLM provider."""

    model_config = SettingsConfigDict(extra="ignore")

    provider: Provider = "ollama"
    model: str = "qwen3"
    api_key: str = ""
    base_url: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.4


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "Weather-Agent"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 3001

    # LLM Providers
    ollama_host: str = Field(default="http://localhost:11434", description="Ollama server URL")
    openai_api_key: str = Field(default="", description="OpenAI API key")
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")

    # Default model settings
    default_provider: Provider = "ollama"
    default_model: str = Field(default="", description="Model name; empty uses the provider default")
    max_tokens: int = 4096
    temperature: float = 0.4
    streaming: bool = Field(default=True, description="Consume model output as a stream")

    # Agent loop
    max_tool_iterations: int = Field(default=10, ge=1, description="Max model calls per turn")
    model_timeout_seconds: float = Field(default=60.0, gt=0, description="Timeout for one model call")
    tool_timeout_seconds: float = Field(default=30.0, gt=0, description="Timeout for one tool call")

    # Conversations
    conversation_max_age_hours: float = Field(default=24, gt=0, description="Conversation expiry age")
    expiry_sweep_interval_seconds: float = Field(default=300, gt=0, description="Expiry sweep interval")

    # Tools
    open_weather_api_key: str = Field(default="", description="OpenWeather API key")
    weather_api_url: str = "https://api.openweathermap.org/data/2.5/weather"
    weather_units: Literal["standard", "metric", "imperial"] = "metric"
    location_api_url: str = "https://ipapi.co/json/"

    @field_validator("ollama_host", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if v else v

    @property
    def conversation_max_age(self) -> timedelta:
        """Conversation max age as a timedelta."""
        return timedelta(hours=self.conversation_max_age_hours)

    def get_llm_config(self, provider: str | None = None) -> LLMConfig:
        """Get LLM configuration for a provider."""
        provider = provider or self.default_provider

        api_key_map = {
            "ollama": "ollama",
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "openrouter": self.openrouter_api_key,
        }

        model_map = {
            "ollama": "qwen3",
            "openai": "gpt-4o",
            "anthropic": "claude-sonnet-4-20250514",
            "openrouter": "anthropic/claude-sonnet-4",
        }

        base_url_map = {
            "ollama": f"{self.ollama_host}/v1",
            "openai": None,
            "anthropic": None,
            "openrouter": "https://openrouter.ai/api/v1",
        }

        return LLMConfig(
            provider=provider,  # type: ignore
            model=self.default_model or model_map.get(provider, "qwen3"),
            api_key=api_key_map.get(provider, ""),
            base_url=base_url_map.get(provider),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
