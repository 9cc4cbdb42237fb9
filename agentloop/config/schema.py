"""
Configuration models for agents and runs.
"""

from concurrent.futures import Executor

from pydantic import BaseModel, ConfigDict, Field, field_validator

from agentloop.config.settings import settings
from agentloop.domain.errors import ErrorKind
from agentloop.providers.llm.base import Model
from agentloop.runtime.event_bus import EventBus


class ModelSettings(BaseModel):
    """Provider-neutral model knobs; the model boundary maps them to its wire format."""

    model_config = ConfigDict(frozen=True)

    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)
    top_p: float | None = Field(default=None, ge=0.0, le=1.0)
    seed: int | None = None
    parallel_tool_calls: bool | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None


class RetrySetup(BaseModel):
    """
    Retry policy for a whole model exchange.

    A run attempt whose output carries an error in ``retriable_error_kinds``
    is re-attempted, up to ``stop_after_attempt`` attempts in total, waiting
    ``delay_after_failed_attempt`` seconds in between.
    """

    model_config = ConfigDict(frozen=True)

    stop_after_attempt: int = Field(default_factory=lambda: settings.retry_max_attempts)
    delay_after_failed_attempt: float = Field(
        default_factory=lambda: settings.retry_delay_seconds, ge=0.0
    )
    retriable_error_kinds: frozenset[ErrorKind] = Field(
        default_factory=ErrorKind.retryable_kinds
    )

    @field_validator("stop_after_attempt", mode="before")
    @classmethod
    def _default_attempts(cls, value: int | None) -> int:
        if value is None or value <= 0:
            return settings.retry_max_attempts
        return value

    @field_validator("retriable_error_kinds", mode="before")
    @classmethod
    def _default_kinds(cls, value):
        if value is None:
            return ErrorKind.retryable_kinds()
        return value

    def is_retriable(self, kind: ErrorKind) -> bool:
        return kind in self.retriable_error_kinds

    @classmethod
    def no_retry(cls) -> "RetrySetup":
        return cls(stop_after_attempt=1, delay_after_failed_attempt=0.0)


class AgentSetup(BaseModel):
    """
    Per-agent setup; a run may override any field.

    Attributes:
        model: Model boundary used for the exchange
        model_settings: Settings forwarded to the model
        executor: Executor running blocking tool bodies
        event_bus: Observer list receiving lifecycle events
        retry_setup: Policy for retrying a whole exchange
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    model: Model | None = None
    model_settings: ModelSettings | None = None
    executor: Executor | None = None
    event_bus: EventBus | None = None
    retry_setup: RetrySetup | None = None

    def merge(self, override: "AgentSetup | None") -> "AgentSetup":
        """Field-by-field merge: values set on ``override`` win."""
        if override is None:
            return self
        updates = {
            name: getattr(override, name)
            for name in type(self).model_fields
            if getattr(override, name) is not None
        }
        return self.model_copy(update=updates)


__all__ = ["ModelSettings", "RetrySetup", "AgentSetup"]
