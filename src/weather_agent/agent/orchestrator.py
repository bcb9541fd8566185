"""
Entry points for callers: create a conversation, continue it by one turn.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from functools import partial

import structlog

from ..config import Settings, get_settings
from ..llm import BaseLLM, LLMMessage, create_llm
from ..tools import ToolRegistry, build_tool_registry
from .loop import AgentLoop, TextSink
from .store import ConversationStore

logger = structlog.get_logger()


@dataclass
class TurnResult:
    """The answer to one turn plus the conversation history after it."""

    response: str
    history: list[LLMMessage] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "response": self.response,
            "history": [msg.to_dict() for msg in self.history],
        }


class Orchestrator:
    """Glues the conversation store and the agent loop together.

    Turns on the same conversation run one after another; turns on
    different conversations run concurrently.
    """

    def __init__(
        self,
        llm: BaseLLM | None = None,
        tool_registry: ToolRegistry | None = None,
        store: ConversationStore | None = None,
        settings: Settings | None = None,
        streaming: bool | None = None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm if llm is not None else create_llm(settings=self.settings)
        self.tool_registry = tool_registry if tool_registry is not None else build_tool_registry(self.settings)
        self.store = store if store is not None else ConversationStore()
        self.loop = AgentLoop(
            llm=self.llm,
            tool_registry=self.tool_registry,
            max_iterations=self.settings.max_tool_iterations,
            model_timeout=self.settings.model_timeout_seconds,
            tool_timeout=self.settings.tool_timeout_seconds,
            streaming=self.settings.streaming if streaming is None else streaming,
        )

    def create_conversation(self) -> str:
        """Start a conversation and return its id."""
        return self.store.create()

    async def continue_conversation(
        self,
        conversation_id: str,
        message: str,
        on_text_delta: TextSink | None = None,
    ) -> TurnResult:
        """Run one turn: user message in, final assistant answer out.

        Raises ConversationNotFoundError before touching any history when the
        id is unknown. If the turn fails, the user message and any tool
        traffic already produced stay in the history and are seen by the
        model on the next turn.
        """
        async with self.store.turn(conversation_id):
            await self.store.append(conversation_id, LLMMessage(role="user", content=message))

            try:
                result = await self.loop.run(
                    self.store.get(conversation_id),
                    on_message=partial(self.store.append, conversation_id),
                    on_text_delta=on_text_delta,
                )
            except Exception as e:
                logger.error(
                    "Conversation turn failed",
                    conversation_id=conversation_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                raise

            history = self.store.get(conversation_id)
            logger.info(
                "Conversation turn completed",
                conversation_id=conversation_id,
                iterations=result.iterations,
                history_length=len(history),
            )
            return TurnResult(response=result.content, history=history)

    def get_history(self, conversation_id: str) -> list[LLMMessage]:
        """Snapshot of a conversation's history."""
        return self.store.get(conversation_id)

    def expire_conversations(self, max_age: timedelta | None = None) -> None:
        """Remove conversations older than ``max_age`` (defaults to settings)."""
        self.store.expire(max_age or self.settings.conversation_max_age)

    def start_expiry(self) -> None:
        """Start the periodic expiry sweep."""
        self.store.start_sweeper(
            self.settings.conversation_max_age,
            self.settings.expiry_sweep_interval_seconds,
        )

    async def shutdown(self) -> None:
        """Stop the expiry sweep and drop all conversations."""
        await self.store.stop_sweeper()
        self.store.clear()
