"""
Output validation.

An OutputValidator may reject a well-formed output against extra constraints.
Retryable failures make the agent send a corrective prompt and ask the model
again; a permanent failure ends the run with DATA_VALIDATION_FAILURE.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, Field

from agentloop.domain.context import RunContext


class FailureType(str, Enum):
    RETRYABLE = "retryable"
    PERMANENT = "permanent"


class ValidationFailure(BaseModel):
    type: FailureType = FailureType.RETRYABLE
    message: str


class OutputValidationResults(BaseModel):
    """Failures found by one or more validators; empty means valid."""

    failures: list[ValidationFailure] = Field(default_factory=list)

    @classmethod
    def success(cls) -> "OutputValidationResults":
        return cls()

    @classmethod
    def failure(cls, *messages: str) -> "OutputValidationResults":
        return cls().add_failures(messages)

    @classmethod
    def permanent_failure(cls, *messages: str) -> "OutputValidationResults":
        return cls().add_failures(messages, FailureType.PERMANENT)

    def add_failure(
        self, message: str, failure_type: FailureType = FailureType.RETRYABLE
    ) -> "OutputValidationResults":
        self.failures.append(ValidationFailure(type=failure_type, message=message))
        return self

    def add_failures(
        self,
        messages: Iterable[str] | None,
        failure_type: FailureType = FailureType.RETRYABLE,
    ) -> "OutputValidationResults":
        for message in messages or ():
            self.add_failure(message, failure_type)
        return self

    def merge(self, other: "OutputValidationResults") -> "OutputValidationResults":
        self.failures.extend(other.failures)
        return self

    @property
    def is_successful(self) -> bool:
        return not self.failures

    @property
    def is_retriable(self) -> bool:
        return not self.is_successful and all(
            f.type is FailureType.RETRYABLE for f in self.failures
        )

    @property
    def messages(self) -> list[str]:
        return [f.message for f in self.failures]


class OutputValidator(ABC):
    @abstractmethod
    def validate(self, context: RunContext, output: Any) -> OutputValidationResults:
        """Check a decoded output."""


class DefaultOutputValidator(OutputValidator):
    """Approves everything."""

    def validate(self, context: RunContext, output: Any) -> OutputValidationResults:
        return OutputValidationResults.success()


class CompositeOutputValidator(OutputValidator):
    """Runs validators in order and collects all their failures."""

    def __init__(self, validators: Iterable[OutputValidator] = ()):
        self.validators: list[OutputValidator] = list(validators)

    def add(self, validator: OutputValidator) -> "CompositeOutputValidator":
        self.validators.append(validator)
        return self

    def validate(self, context: RunContext, output: Any) -> OutputValidationResults:
        results = OutputValidationResults()
        for validator in self.validators:
            results.merge(validator.validate(context, output))
        return results


__all__ = [
    "FailureType",
    "ValidationFailure",
    "OutputValidationResults",
    "OutputValidator",
    "DefaultOutputValidator",
    "CompositeOutputValidator",
]
