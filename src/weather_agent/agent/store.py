"""
In-memory conversation store.

Conversations live for the process lifetime at most and are removed by an
age-based expiry sweep. Locks are per conversation: mutations of one
conversation are serialized, different conversations never block each other.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator
from uuid import uuid4

import structlog

from ..exceptions import ConversationNotFoundError
from ..llm.base import LLMMessage
from .prompt import SYSTEM_PROMPT

logger = structlog.get_logger()


@dataclass
class Conversation:
    """A conversation and its ordered message history."""

    id: str
    messages: list[LLMMessage]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    append_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    turn_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def tool_call_ids(self) -> set[str]:
        """Ids of every tool call requested so far."""
        return {
            tc.id
            for msg in self.messages
            if msg.role == "assistant"
            for tc in msg.tool_calls or []
        }


class ConversationStore:
    """Process-wide map from conversation id to history."""

    def __init__(self, system_prompt: str = SYSTEM_PROMPT):
        self.system_prompt = system_prompt
        self._conversations: dict[str, Conversation] = {}
        self._sweeper: asyncio.Task | None = None

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def create(self, system_prompt: str | None = None) -> str:
        """Create a conversation seeded with the system message."""
        conversation_id = uuid4().hex
        self._conversations[conversation_id] = Conversation(
            id=conversation_id,
            messages=[LLMMessage(role="system", content=system_prompt or self.system_prompt)],
        )
        logger.info("Conversation created", conversation_id=conversation_id)
        return conversation_id

    async def append(self, conversation_id: str, message: LLMMessage) -> None:
        """Append a message to a conversation."""
        conversation = self._require(conversation_id)

        async with conversation.append_lock:
            if message.role == "system":
                raise ValueError("System messages can only seed a conversation")
            if message.role == "tool" and message.tool_call_id not in conversation.tool_call_ids():
                raise ValueError(
                    f"Tool result {message.tool_call_id!r} does not answer any earlier tool call"
                )
            conversation.messages.append(message)

    def get(self, conversation_id: str) -> list[LLMMessage]:
        """Snapshot of a conversation's messages."""
        return list(self._require(conversation_id).messages)

    def created_at(self, conversation_id: str) -> datetime:
        return self._require(conversation_id).created_at

    @asynccontextmanager
    async def turn(self, conversation_id: str) -> AsyncIterator[Conversation]:
        """Hold a conversation's turn lock so turns on one id run one at a time."""
        conversation = self._require(conversation_id)
        async with conversation.turn_lock:
            yield conversation

    def expire(self, max_age: timedelta, now: datetime | None = None) -> None:
        """Remove conversations created more than ``max_age`` ago."""
        cutoff = (now or datetime.now(timezone.utc)) - max_age
        expired = [
            cid for cid, conversation in self._conversations.items()
            if conversation.created_at < cutoff
        ]
        for cid in expired:
            del self._conversations[cid]

        if expired:
            logger.info("Expired conversations", count=len(expired), remaining=len(self))

    def clear(self) -> None:
        """Drop all conversations."""
        self._conversations.clear()

    async def _sweep_loop(self, max_age: timedelta, interval: float) -> None:
        while True:
            try:
                await asyncio.sleep(interval)
                self.expire(max_age)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Expiry sweep error", error=str(e))

    def start_sweeper(self, max_age: timedelta, interval: float) -> None:
        """Start the background expiry sweep."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(max_age, interval))
        logger.info("Expiry sweeper started", max_age=str(max_age), interval=interval)

    async def stop_sweeper(self) -> None:
        """Stop the background expiry sweep."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("Expiry sweeper stopped")
