"""
agentloop - Agent execution engine

Top-level exports for easy access to core functionality.
"""

# Agent runtime
from agentloop.agent import (
    Agent,
    AgentExtension,
    AgentOutput,
    CompositeOutputValidator,
    EarlyTerminationResponse,
    EarlyTerminationStrategy,
    ExtensionPromptSchema,
    Fact,
    FactList,
    MaxTurnsTermination,
    NeverTerminateEarly,
    OutputValidationResults,
    OutputValidator,
    ProcessingCompletedData,
    Task,
    UsageLimitTermination,
)

# Domain models
from agentloop.domain import (
    AgentError,
    AgentEvent,
    AgentLoopError,
    AgentMessage,
    ErrorKind,
    EventType,
    ProcessingMode,
    RequestMetadata,
    RunContext,
    StructuredOutputMessage,
    SystemPromptMessage,
    TextOutputMessage,
    ToolCallFailure,
    ToolCallRequest,
    ToolCallResponse,
    UsageStats,
    UserPromptMessage,
)

# Providers
from agentloop.providers.llm import Model, ModelOutput, ModelOutputDefinition, ScriptedModel, ScriptedTurn

# Tools
from agentloop.tools import (
    ApproveAllToolRuns,
    ExternalTool,
    ExternalToolResponse,
    InternalTool,
    ToolBox,
    ToolDefinition,
    ToolExecutor,
    function_tool,
    tool,
)

# Config and runtime
from agentloop.config import AgentSetup, ModelSettings, RetrySetup, settings
from agentloop.runtime import CapturingObserver, EventBus

__version__ = "0.1.0"

__all__ = [
    # Agent
    "Agent",
    "AgentExtension",
    "AgentOutput",
    "ProcessingCompletedData",
    "ExtensionPromptSchema",
    "Fact",
    "FactList",
    "Task",
    "OutputValidator",
    "OutputValidationResults",
    "CompositeOutputValidator",
    "EarlyTerminationStrategy",
    "EarlyTerminationResponse",
    "NeverTerminateEarly",
    "MaxTurnsTermination",
    "UsageLimitTermination",
    # Domain
    "AgentError",
    "AgentEvent",
    "AgentLoopError",
    "AgentMessage",
    "ErrorKind",
    "EventType",
    "ProcessingMode",
    "RequestMetadata",
    "RunContext",
    "StructuredOutputMessage",
    "SystemPromptMessage",
    "TextOutputMessage",
    "ToolCallFailure",
    "ToolCallRequest",
    "ToolCallResponse",
    "UsageStats",
    "UserPromptMessage",
    # Providers
    "Model",
    "ModelOutput",
    "ModelOutputDefinition",
    "ScriptedModel",
    "ScriptedTurn",
    # Tools
    "tool",
    "function_tool",
    "ToolDefinition",
    "InternalTool",
    "ExternalTool",
    "ExternalToolResponse",
    "ToolBox",
    "ToolExecutor",
    "ApproveAllToolRuns",
    # Config and runtime
    "AgentSetup",
    "ModelSettings",
    "RetrySetup",
    "settings",
    "EventBus",
    "CapturingObserver",
]
