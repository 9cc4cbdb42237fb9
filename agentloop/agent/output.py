"""
AgentOutput and run completion records.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from agentloop.domain.context import ProcessingMode, RunContext
from agentloop.domain.errors import AgentError
from agentloop.domain.messages import AgentMessage
from agentloop.domain.usage import UsageStats

if TYPE_CHECKING:
    from agentloop.agent.agent import Agent
    from agentloop.config.schema import AgentSetup

T = TypeVar("T")


class AgentOutput(BaseModel, Generic[T]):
    """
    Result of a run.

    Attributes:
        data: Decoded output (None on error)
        new_messages: Messages added by this run
        all_messages: Full history, seeded messages included
        usage: The run's usage accumulator
        error: SUCCESS, or what went wrong
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: T | None = None
    new_messages: list[AgentMessage] = Field(default_factory=list)
    all_messages: list[AgentMessage] = Field(default_factory=list)
    usage: UsageStats = Field(default_factory=UsageStats)
    error: AgentError = Field(default_factory=AgentError.success)

    @property
    def is_success(self) -> bool:
        return self.error.is_success

    @classmethod
    def success(
        cls,
        data: T,
        new_messages: list[AgentMessage],
        all_messages: list[AgentMessage],
        usage: UsageStats,
    ) -> "AgentOutput[T]":
        return cls(
            data=data, new_messages=new_messages, all_messages=all_messages, usage=usage
        )

    @classmethod
    def failure(
        cls,
        error: AgentError,
        new_messages: list[AgentMessage],
        all_messages: list[AgentMessage],
        usage: UsageStats,
    ) -> "AgentOutput[T]":
        return cls(
            error=error, new_messages=new_messages, all_messages=all_messages, usage=usage
        )


@dataclass(frozen=True)
class ProcessingCompletedData:
    """Handed to ``Agent.on_request_completed`` listeners after every run."""

    agent: "Agent"
    setup: "AgentSetup"
    context: RunContext
    request: Any
    output: AgentOutput
    mode: ProcessingMode


class ErrorResponseHandler(Protocol):
    """Last chance to inspect or rewrite a run's output."""

    def handle(self, context: RunContext, output: AgentOutput) -> AgentOutput: ...


class DefaultErrorHandler:
    def handle(self, context: RunContext, output: AgentOutput) -> AgentOutput:
        return output


__all__ = [
    "AgentOutput",
    "ProcessingCompletedData",
    "ErrorResponseHandler",
    "DefaultErrorHandler",
]
