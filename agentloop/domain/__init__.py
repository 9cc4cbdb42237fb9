"""
Domain module - Pure data models with no dependency on the runtime.

This module contains the error taxonomy, messages, usage counters, run
context and lifecycle events.
"""

# Errors
from .errors import (
    AgentError,
    AgentLoopError,
    ErrorKind,
    ToolCallFailure,
    ToolRegistrationError,
    root_cause,
    root_cause_message,
)

# Messages
from .messages import (
    AgentMessage,
    MessageType,
    StructuredOutputMessage,
    SystemPromptMessage,
    TextOutputMessage,
    ToolCallRequest,
    ToolCallResponse,
    UserPromptMessage,
    dump_messages,
    is_transient_system_prompt,
    load_messages,
    new_message_id,
)

# Usage
from .usage import UsageStats

# Context
from .context import ModelRunContext, ProcessingMode, RequestMetadata, RunContext

# Events
from .events import (
    AgentEvent,
    EventType,
    InputReceivedEvent,
    MessageReceivedEvent,
    MessageSentEvent,
    OutputErrorEvent,
    OutputGeneratedEvent,
    ToolCallApprovalDeniedEvent,
    ToolCallCompletedEvent,
    ToolCalledEvent,
)

__all__ = [
    # Errors
    "AgentError",
    "AgentLoopError",
    "ErrorKind",
    "ToolCallFailure",
    "ToolRegistrationError",
    "root_cause",
    "root_cause_message",
    # Messages
    "AgentMessage",
    "MessageType",
    "StructuredOutputMessage",
    "SystemPromptMessage",
    "TextOutputMessage",
    "ToolCallRequest",
    "ToolCallResponse",
    "UserPromptMessage",
    "dump_messages",
    "is_transient_system_prompt",
    "load_messages",
    "new_message_id",
    # Usage
    "UsageStats",
    # Context
    "ModelRunContext",
    "ProcessingMode",
    "RequestMetadata",
    "RunContext",
    # Events
    "AgentEvent",
    "EventType",
    "InputReceivedEvent",
    "MessageReceivedEvent",
    "MessageSentEvent",
    "OutputErrorEvent",
    "OutputGeneratedEvent",
    "ToolCallApprovalDeniedEvent",
    "ToolCallCompletedEvent",
    "ToolCalledEvent",
]
