"""
Per-run context objects.

RunContext is created once at the start of a run and handed to tools,
extensions, approval seekers and the model boundary. It is immutable except
for the shared UsageStats accumulator and the history list, which only the
run loop appends to.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .messages import AgentMessage
from .usage import UsageStats

if TYPE_CHECKING:
    from agentloop.config.schema import AgentSetup

R = TypeVar("R")


class ProcessingMode(str, Enum):
    """How the run delivers its output."""

    DIRECT = "direct"
    STREAMING = "streaming"


class RequestMetadata(BaseModel):
    """
    Caller supplied metadata for a request.

    ``usage_stats`` is an optional accumulator owned by the caller. When set,
    the run's usage is merged into it on completion, which lets a parent
    agent total up the usage of its sub-agents.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str | None = None
    user_id: str | None = None
    run_id: str | None = None
    custom_params: dict[str, Any] = Field(default_factory=dict)
    usage_stats: UsageStats | None = None


@dataclass(frozen=True)
class RunContext(Generic[R]):
    """
    Immutable run context.

    Attributes:
        run_id: Identifier of this run
        agent_name: Name of the agent executing the run
        request: The request being processed
        metadata: Request metadata (session/user ids, caller usage accumulator)
        setup: Merged agent setup for this run
        messages: History list for the run (append-only)
        usage: Usage accumulator for this run
        mode: Processing mode
    """

    run_id: str
    agent_name: str
    request: R
    metadata: RequestMetadata
    setup: "AgentSetup"
    messages: list[AgentMessage] = field(default_factory=list)
    usage: UsageStats = field(default_factory=UsageStats)
    mode: ProcessingMode = ProcessingMode.DIRECT

    @property
    def session_id(self) -> str | None:
        return self.metadata.session_id

    @property
    def user_id(self) -> str | None:
        return self.metadata.user_id


@dataclass(frozen=True)
class ModelRunContext:
    """The subset of the run context handed to the model boundary."""

    agent_name: str
    run_id: str
    session_id: str | None
    user_id: str | None
    setup: "AgentSetup"
    usage: UsageStats
    mode: ProcessingMode


__all__ = [
    "ProcessingMode",
    "RequestMetadata",
    "RunContext",
    "ModelRunContext",
]
