"""
Agent module - the brain of the system.

Includes:
- AgentLoop: model / tool-call state machine
- ConversationStore: in-memory per-conversation history
- Orchestrator: create_conversation / continue_conversation entry points
"""

from .loop import AgentLoop, AgentResult, LoopState
from .orchestrator import Orchestrator, TurnResult
from .prompt import SYSTEM_PROMPT
from .store import Conversation, ConversationStore

__all__ = [
    "AgentLoop",
    "AgentResult",
    "LoopState",
    "Orchestrator",
    "TurnResult",
    "SYSTEM_PROMPT",
    "Conversation",
    "ConversationStore",
]
