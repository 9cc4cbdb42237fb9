"""
Agent messages - the history of a run.

A run's history is a list of immutable AgentMessage values. The list only
grows: the runtime appends the system and user prompts, the model boundary
appends tool call requests/responses and the final output. Messages are
never modified once appended.

AgentMessage is a discriminated union on ``message_type``:

- SystemPromptMessage / UserPromptMessage: requests sent by the agent
- ToolCallRequest: a tool invocation requested by the model
- ToolCallResponse: the result of running that tool
- TextOutputMessage / StructuredOutputMessage: final model output
"""

import itertools
import threading
import time
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .errors import ErrorKind


class MessageType(str, Enum):
    SYSTEM_PROMPT = "system_prompt"
    USER_PROMPT = "user_prompt"
    TOOL_CALL_REQUEST = "tool_call_request"
    TOOL_CALL_RESPONSE = "tool_call_response"
    TEXT_OUTPUT = "text_output"
    STRUCTURED_OUTPUT = "structured_output"


# ============================================================================
# Message ids
# ============================================================================

_id_lock = threading.Lock()
_id_counter = itertools.count(1)
_last_ns = 0


def new_message_id() -> str:
    """
    Return a unique, monotonically increasing message id.

    Ids sort lexicographically in creation order within a process.
    """
    global _last_ns
    with _id_lock:
        now = max(time.time_ns(), _last_ns + 1)
        _last_ns = now
        seq = next(_id_counter)
    return f"{now:020d}-{seq:08d}"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


# ============================================================================
# Message variants
# ============================================================================


class BaseAgentMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str | None = None
    run_id: str | None = None
    message_id: str = Field(default_factory=new_message_id)
    timestamp: int = Field(default_factory=_now_ms)


class SystemPromptMessage(BaseAgentMessage):
    message_type: Literal[MessageType.SYSTEM_PROMPT] = MessageType.SYSTEM_PROMPT
    content: str
    # Regenerated on every run; the streaming path drops seeded copies
    transient: bool = True


class UserPromptMessage(BaseAgentMessage):
    message_type: Literal[MessageType.USER_PROMPT] = MessageType.USER_PROMPT
    content: str


class ToolCallRequest(BaseAgentMessage):
    message_type: Literal[MessageType.TOOL_CALL_REQUEST] = MessageType.TOOL_CALL_REQUEST
    tool_call_id: str
    tool_name: str
    arguments: str = "{}"


class ToolCallResponse(BaseAgentMessage):
    message_type: Literal[MessageType.TOOL_CALL_RESPONSE] = MessageType.TOOL_CALL_RESPONSE
    tool_call_id: str
    tool_name: str
    error_kind: ErrorKind = ErrorKind.SUCCESS
    response: str

    @property
    def is_success(self) -> bool:
        return self.error_kind is ErrorKind.SUCCESS


class TextOutputMessage(BaseAgentMessage):
    message_type: Literal[MessageType.TEXT_OUTPUT] = MessageType.TEXT_OUTPUT
    content: str


class StructuredOutputMessage(BaseAgentMessage):
    message_type: Literal[MessageType.STRUCTURED_OUTPUT] = MessageType.STRUCTURED_OUTPUT
    content: str


AgentMessage = Annotated[
    Union[
        SystemPromptMessage,
        UserPromptMessage,
        ToolCallRequest,
        ToolCallResponse,
        TextOutputMessage,
        StructuredOutputMessage,
    ],
    Field(discriminator="message_type"),
]

_messages_adapter: TypeAdapter[list[AgentMessage]] = TypeAdapter(list[AgentMessage])


def dump_messages(messages: list[AgentMessage]) -> bytes:
    """Serialize a history to JSON (for session stores)."""
    return _messages_adapter.dump_json(messages)


def load_messages(data: str | bytes) -> list[AgentMessage]:
    """Inverse of dump_messages."""
    return _messages_adapter.validate_json(data)


def is_transient_system_prompt(message: AgentMessage) -> bool:
    return isinstance(message, SystemPromptMessage) and message.transient


__all__ = [
    "MessageType",
    "AgentMessage",
    "BaseAgentMessage",
    "SystemPromptMessage",
    "UserPromptMessage",
    "ToolCallRequest",
    "ToolCallResponse",
    "TextOutputMessage",
    "StructuredOutputMessage",
    "new_message_id",
    "dump_messages",
    "load_messages",
    "is_transient_system_prompt",
]
