"""
Command-line interface for Weather-Agent.
"""

import argparse
import asyncio
import sys

import structlog
import uvicorn

from .config import get_settings
from .exceptions import AgentError

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

EXIT_COMMANDS = {"exit", "quit"}


def main() -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="weather-agent",
        description="Weather-Agent - a tool-calling conversational assistant",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--host", default=None, help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    chat_parser = subparsers.add_parser("chat", help="Chat with the agent in the terminal")
    chat_parser.add_argument("--no-stream", action="store_true", help="Wait for complete answers")

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--check", action="store_true", help="Check configuration validity")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        settings = get_settings()
        run_server(args.host or settings.host, args.port or settings.port, args.reload)
    elif args.command == "chat":
        asyncio.run(run_chat(streaming=not args.no_stream))
    elif args.command == "config":
        show_config(args.check)
    else:
        parser.print_help()


def run_server(host: str, port: int, reload: bool) -> None:
    """Run the FastAPI server."""
    logger.info("Starting Weather-Agent server", host=host, port=port)

    uvicorn.run(
        "weather_agent.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
        log_level=get_settings().log_level.lower(),
    )


async def run_chat(streaming: bool = True) -> None:
    """Interactive chat loop in the terminal."""
    from .agent import Orchestrator

    orchestrator = Orchestrator(streaming=streaming)
    conversation_id = orchestrator.create_conversation()

    async def print_delta(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    try:
        while True:
            try:
                user_input = await asyncio.to_thread(
                    input, "\nHow can I help you today? (type 'exit' to quit): "
                )
            except EOFError:
                user_input = "exit"

            if user_input.strip().lower() in EXIT_COMMANDS:
                print("Conversation ended.")
                break
            if not user_input.strip():
                continue

            print("\nProcessing your question...\n\nAgent Response:")
            try:
                result = await orchestrator.continue_conversation(
                    conversation_id,
                    user_input,
                    on_text_delta=print_delta if streaming else None,
                )
            except AgentError as e:
                print(f"\nError: {e.message}")
                continue

            if not streaming:
                print(result.response)
            print(f"\n\nConversation history length: {len(result.history)} messages")
    finally:
        await orchestrator.shutdown()


def show_config(check: bool) -> None:
    """Show current configuration."""
    settings = get_settings()
    llm_config = settings.get_llm_config()

    def mask(value: str) -> str:
        if not value:
            return "(not set)"
        return value[:4] + "..." + value[-4:] if len(value) > 10 else "****"

    print("\n=== Weather-Agent Configuration ===\n")

    print("Server:")
    print(f"  Host: {settings.host}")
    print(f"  Port: {settings.port}")
    print(f"  Debug: {settings.debug}")

    print("\nLLM:")
    print(f"  Provider: {llm_config.provider}")
    print(f"  Model: {llm_config.model}")
    print(f"  Base URL: {llm_config.base_url or '(provider default)'}")
    print(f"  Temperature: {llm_config.temperature}")
    print(f"  Streaming: {settings.streaming}")
    print(f"  OpenAI Key: {mask(settings.openai_api_key)}")
    print(f"  Anthropic Key: {mask(settings.anthropic_api_key)}")
    print(f"  OpenRouter Key: {mask(settings.openrouter_api_key)}")

    print("\nAgent Loop:")
    print(f"  Max Tool Iterations: {settings.max_tool_iterations}")
    print(f"  Model Timeout: {settings.model_timeout_seconds}s")
    print(f"  Tool Timeout: {settings.tool_timeout_seconds}s")
    print(f"  Conversation Max Age: {settings.conversation_max_age_hours}h")

    print("\nTools:")
    print(f"  OpenWeather Key: {mask(settings.open_weather_api_key)}")
    print(f"  Weather Units: {settings.weather_units}")
    print(f"  Location API: {settings.location_api_url}")

    if check:
        print("\n=== Configuration Check ===\n")
        errors = []
        warnings = []

        if llm_config.provider != "ollama" and not llm_config.api_key:
            errors.append(f"An API key is required for provider '{llm_config.provider}'")

        if not settings.open_weather_api_key:
            warnings.append("OPEN_WEATHER_API_KEY is not set - weather lookups will fail")

        if errors:
            print("Errors:")
            for e in errors:
                print(f"   - {e}")

        if warnings:
            print("Warnings:")
            for w in warnings:
                print(f"   - {w}")

        if not errors and not warnings:
            print("Configuration looks good!")
        elif not errors:
            print("\nConfiguration is valid (with warnings)")
        else:
            print("\nConfiguration has errors - fix them before starting")


if __name__ == "__main__":
    main()
