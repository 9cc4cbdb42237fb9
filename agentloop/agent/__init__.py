"""
Agent module - the agent runtime and its pluggable policies.
"""

from .agent import Agent, CompletionListener
from .extension import AgentExtension
from .output import AgentOutput, DefaultErrorHandler, ErrorResponseHandler, ProcessingCompletedData
from .prompt import (
    ExtensionPromptSchema,
    Fact,
    FactList,
    SystemPrompt,
    Task,
    ToolSummary,
    ValidationErrorFixPrompt,
)
from .retry import retry_exchange
from .termination import (
    EarlyTerminationResponse,
    EarlyTerminationStrategy,
    MaxTurnsTermination,
    NeverTerminateEarly,
    ResponseType,
    UsageLimitTermination,
)
from .validation import (
    CompositeOutputValidator,
    DefaultOutputValidator,
    FailureType,
    OutputValidationResults,
    OutputValidator,
    ValidationFailure,
)

__all__ = [
    # Runtime
    "Agent",
    "AgentOutput",
    "CompletionListener",
    "ProcessingCompletedData",
    "ErrorResponseHandler",
    "DefaultErrorHandler",
    "retry_exchange",
    # Extensions and prompts
    "AgentExtension",
    "ExtensionPromptSchema",
    "Fact",
    "FactList",
    "SystemPrompt",
    "Task",
    "ToolSummary",
    "ValidationErrorFixPrompt",
    # Early termination
    "EarlyTerminationResponse",
    "EarlyTerminationStrategy",
    "MaxTurnsTermination",
    "NeverTerminateEarly",
    "ResponseType",
    "UsageLimitTermination",
    # Output validation
    "CompositeOutputValidator",
    "DefaultOutputValidator",
    "FailureType",
    "OutputValidationResults",
    "OutputValidator",
    "ValidationFailure",
]
