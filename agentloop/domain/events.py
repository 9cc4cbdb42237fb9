"""
Lifecycle events raised during a run.

Events are published on the run's EventBus. They are plain pydantic models so
observers can forward them anywhere with ``model_dump(mode="json")``.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorKind


class EventType(str, Enum):
    INPUT_RECEIVED = "input_received"
    MESSAGE_SENT = "message_sent"
    MESSAGE_RECEIVED = "message_received"
    TOOL_CALLED = "tool_called"
    TOOL_CALL_APPROVAL_DENIED = "tool_call_approval_denied"
    TOOL_CALL_COMPLETED = "tool_call_completed"
    OUTPUT_GENERATED = "output_generated"
    OUTPUT_ERROR = "output_error"


class AgentEvent(BaseModel):
    """Base event; every event identifies the agent and run it belongs to."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    event_id: str = Field(default_factory=lambda: str(uuid4()))
    agent_name: str
    run_id: str
    session_id: str | None = None
    user_id: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)


class InputReceivedEvent(AgentEvent):
    type: EventType = EventType.INPUT_RECEIVED
    content: str


class MessageSentEvent(AgentEvent):
    type: EventType = EventType.MESSAGE_SENT
    turn: int
    message_count: int


class MessageReceivedEvent(AgentEvent):
    type: EventType = EventType.MESSAGE_RECEIVED
    turn: int
    message_type: str
    elapsed_ms: float


class ToolCalledEvent(AgentEvent):
    type: EventType = EventType.TOOL_CALLED
    tool_call_id: str
    tool_name: str
    arguments: str


class ToolCallApprovalDeniedEvent(AgentEvent):
    type: EventType = EventType.TOOL_CALL_APPROVAL_DENIED
    tool_call_id: str
    tool_name: str


class ToolCallCompletedEvent(AgentEvent):
    type: EventType = EventType.TOOL_CALL_COMPLETED
    tool_call_id: str
    tool_name: str
    error_kind: ErrorKind
    success: bool
    response: str
    elapsed_ms: float


class OutputGeneratedEvent(AgentEvent):
    type: EventType = EventType.OUTPUT_GENERATED
    content: str
    usage: dict[str, Any] = Field(default_factory=dict)
    elapsed_ms: float


class OutputErrorEvent(AgentEvent):
    type: EventType = EventType.OUTPUT_ERROR
    error_kind: ErrorKind
    message: str
    elapsed_ms: float


__all__ = [
    "EventType",
    "AgentEvent",
    "InputReceivedEvent",
    "MessageSentEvent",
    "MessageReceivedEvent",
    "ToolCalledEvent",
    "ToolCallApprovalDeniedEvent",
    "ToolCallCompletedEvent",
    "OutputGeneratedEvent",
    "OutputErrorEvent",
]
