"""
Early termination strategies.

A strategy is consulted after every model turn and may stop the run before
the model produces its final answer (runaway tool loops, cost guards).
"""

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel, ConfigDict

from agentloop.config.schema import ModelSettings
from agentloop.domain.context import ModelRunContext
from agentloop.domain.errors import ErrorKind
from agentloop.providers.llm.base import ModelOutput


class ResponseType(str, Enum):
    CONTINUE = "continue"
    TERMINATE = "terminate"


class EarlyTerminationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    response_type: ResponseType
    error_kind: ErrorKind = ErrorKind.SUCCESS
    reason: str = ""

    @property
    def should_terminate(self) -> bool:
        return self.response_type is ResponseType.TERMINATE

    @classmethod
    def do_not_terminate(cls) -> "EarlyTerminationResponse":
        return cls(response_type=ResponseType.CONTINUE, reason=ErrorKind.SUCCESS.message)

    @classmethod
    def terminate(
        cls, reason: str, error_kind: ErrorKind = ErrorKind.MODEL_RUN_TERMINATED
    ) -> "EarlyTerminationResponse":
        return cls(response_type=ResponseType.TERMINATE, error_kind=error_kind, reason=reason)


class EarlyTerminationStrategy(ABC):
    @abstractmethod
    def evaluate(
        self,
        model_settings: ModelSettings | None,
        model_run_context: ModelRunContext,
        output: ModelOutput | None,
        turn: int,
    ) -> EarlyTerminationResponse:
        """
        Decide whether the run should stop.

        Args:
            model_settings: Settings of the current run
            model_run_context: Ids and usage of the current run
            output: Output of the turn (None when tool calls were handled)
            turn: 1-based turn number within the current attempt
        """


class NeverTerminateEarly(EarlyTerminationStrategy):
    def evaluate(self, model_settings, model_run_context, output, turn):
        return EarlyTerminationResponse.do_not_terminate()


class MaxTurnsTermination(EarlyTerminationStrategy):
    """Stop when the model still wants tools after ``max_turns`` turns."""

    def __init__(self, max_turns: int):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.max_turns = max_turns

    def evaluate(self, model_settings, model_run_context, output, turn):
        if output is None and turn >= self.max_turns:
            return EarlyTerminationResponse.terminate(
                f"Maximum number of turns ({self.max_turns}) reached"
            )
        return EarlyTerminationResponse.do_not_terminate()


class UsageLimitTermination(EarlyTerminationStrategy):
    """Cost guard on the run's usage counters; unset limits are ignored."""

    def __init__(
        self,
        max_total_tokens: int | None = None,
        max_requests: int | None = None,
        max_tool_calls: int | None = None,
    ):
        self.max_total_tokens = max_total_tokens
        self.max_requests = max_requests
        self.max_tool_calls = max_tool_calls

    def evaluate(self, model_settings, model_run_context, output, turn):
        usage = model_run_context.usage
        checks = (
            ("total tokens", usage.total_tokens, self.max_total_tokens),
            ("model requests", usage.requests_for_run, self.max_requests),
            ("tool calls", usage.tool_calls_for_run, self.max_tool_calls),
        )
        for label, used, limit in checks:
            if limit is not None and used > limit:
                return EarlyTerminationResponse.terminate(
                    f"Usage limit exceeded for {label}: {used} > {limit}"
                )
        return EarlyTerminationResponse.do_not_terminate()


__all__ = [
    "ResponseType",
    "EarlyTerminationResponse",
    "EarlyTerminationStrategy",
    "NeverTerminateEarly",
    "MaxTurnsTermination",
    "UsageLimitTermination",
]
