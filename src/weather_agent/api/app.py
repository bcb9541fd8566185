"""
FastAPI application factory.

A thin adapter exposing the orchestrator over HTTP:
- POST /api/conversation/create
- POST /api/conversation/message
- GET  /api/conversation/{conversation_id}
- GET  /api/health
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..agent import Orchestrator
from ..config import Settings, get_settings
from ..exceptions import AgentError

logger = structlog.get_logger()

VERSION = "0.1.0"


class MessageRequest(BaseModel):
    """Body of a continue-conversation request."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(default="", alias="conversationId")
    message: str = ""


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    orchestrator: Orchestrator = app.state.orchestrator
    orchestrator.start_expiry()

    yield

    await orchestrator.shutdown()
    logger.info("Application shutdown complete")


def create_app(
    settings: Settings | None = None,
    orchestrator: Orchestrator | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Conversational weather assistant with tool calling",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator or Orchestrator(settings=settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AgentError)
    async def agent_error_handler(request: Request, exc: AgentError) -> JSONResponse:
        logger.error(
            "Request failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=exc.message,
        )
        return JSONResponse(status_code=exc.http_status, content={"error": exc.message})

    # ------------------------------------------------------------------ #
    # Health
    # ------------------------------------------------------------------ #
    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        orchestrator: Orchestrator = app.state.orchestrator
        return {
            "status": "healthy",
            "version": VERSION,
            "provider": orchestrator.llm.provider_name,
            "model": orchestrator.llm.model,
            "tools": orchestrator.tool_registry.list_tools(),
            "conversations": len(orchestrator.store),
        }

    # ------------------------------------------------------------------ #
    # Conversations
    # ------------------------------------------------------------------ #
    @app.post("/api/conversation/create")
    async def create_conversation():
        """Start a new conversation."""
        conversation_id = app.state.orchestrator.create_conversation()
        return {"conversationId": conversation_id}

    @app.post("/api/conversation/message")
    async def send_message(request: MessageRequest):
        """Send a message to the agent and return its answer."""
        if not request.conversation_id or not request.message:
            raise HTTPException(status_code=400, detail="Missing conversationId or message")

        result = await app.state.orchestrator.continue_conversation(
            request.conversation_id,
            request.message,
        )
        return result.to_dict()

    @app.get("/api/conversation/{conversation_id}")
    async def get_conversation(conversation_id: str):
        """Get a conversation's history."""
        history = app.state.orchestrator.get_history(conversation_id)
        return {
            "conversationId": conversation_id,
            "history": [msg.to_dict() for msg in history],
        }

    return app
