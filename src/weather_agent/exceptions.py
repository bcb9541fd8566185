"""
Error taxonomy for the agent.

Every error raised across module boundaries derives from AgentError so the
HTTP adapter can map it to a status code in one place. The ToolError family
never escapes the agent loop: it is turned into a tool-result message the
model can react to.
"""


class AgentError(Exception):
    """Base class for agent errors.

    Attributes:
        message: Human-readable description.
        http_status: Status code used when surfaced over HTTP.
    """

    http_status: int = 500

    def __init__(self, message: str, http_status: int | None = None):
        self.message = message
        if http_status is not None:
            self.http_status = http_status
        super().__init__(message)


class ConversationNotFoundError(AgentError):
    """The conversation id is unknown (never created, or expired)."""

    http_status = 404

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} not found")


class DuplicateToolError(AgentError):
    """A tool with the same name is already registered."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' is already registered")


class ToolError(AgentError):
    """Base class for errors recovered locally by the agent loop."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(message)


class UnknownToolError(ToolError):
    """The model asked for a tool that is not registered."""

    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Tool '{tool_name}' not found")


class ToolArgumentValidationError(ToolError):
    """Tool arguments do not match the tool's parameter schema."""


class ToolInvocationError(ToolError):
    """The tool failed while executing (upstream error, timeout, bad response)."""


class AgentLoopExceededError(AgentError):
    """The model kept requesting tools past the iteration limit."""

    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__(
            f"Agent loop exceeded {max_iterations} model invocations without a final answer"
        )


class ModelInvocationError(AgentError):
    """The language model could not be reached or timed out."""

    http_status = 502
