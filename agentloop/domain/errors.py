"""
Error taxonomy for agent runs and tool calls.

ErrorKind is a closed enumeration. Every member carries a message template
and a static ``retryable`` flag which drives the default retry behaviour of
both the tool invocation subsystem and the outer model-exchange retry.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ErrorKind(str, Enum):
    """Closed set of error kinds."""

    SUCCESS = ("success", "Success", False)
    NO_RESPONSE = ("no_response", "No response", True)
    REFUSED = ("refused", "Refused: Reason: {}", False)
    FILTERED = ("filtered", "Content filtered", False)
    LENGTH_EXCEEDED = ("length_exceeded", "Content length exceeded", False)
    TOOL_CALL_PERMANENT_FAILURE = (
        "tool_call_permanent_failure",
        "Tool call failed permanently for tool: {}",
        False,
    )
    TOOL_CALL_TEMPORARY_FAILURE = (
        "tool_call_temporary_failure",
        "Tool call failed temporarily for tool: {}",
        True,
    )
    TOOL_CALL_TIMEOUT = ("tool_call_timeout", "Tool call timed out for tool: {}", False)
    JSON_ERROR = ("json_error", "Error parsing JSON. Error: {}", True)
    SERIALIZATION_ERROR = (
        "serialization_error",
        "Error serializing object to JSON. Error: {}",
        True,
    )
    DESERIALIZATION_ERROR = (
        "deserialization_error",
        "Error deserializing object from JSON. Error: {}",
        True,
    )
    UNKNOWN_FINISH_REASON = ("unknown_finish_reason", "Unknown finish reason: {}", True)
    GENERIC_MODEL_CALL_FAILURE = (
        "generic_model_call_failure",
        "Model call failed with error: {}",
        True,
    )
    DATA_VALIDATION_FAILURE = (
        "data_validation_failure",
        "Model data validation failed. Errors: {}",
        True,
    )
    FORCED_RETRY = ("forced_retry", "Retry has been forced", True)
    MODEL_CALL_COMMUNICATION_ERROR = ("model_call_communication_error", "Network error", True)
    MODEL_CALL_RATE_LIMIT_EXCEEDED = (
        "model_call_rate_limit_exceeded",
        "Rate limit exceeded: {}",
        True,
    )
    MODEL_CALL_HTTP_FAILURE = ("model_call_http_failure", "Error making HTTP Call: {}", True)
    UNKNOWN = ("unknown", "Unknown response", True)
    MODEL_RUN_TERMINATED = ("model_run_terminated", "Model run was terminated: {}", False)

    def __new__(cls, value: str, message: str, retryable: bool):
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.message = message
        obj.retryable = retryable
        return obj

    def render(self, *args: object) -> str:
        """Render the message template, ignoring surplus or missing args."""
        placeholders = self.message.count("{}")
        if not placeholders:
            return self.message
        if not args:
            # "Refused: Reason: {}" -> "Refused: Reason"
            return self.message.split("{}")[0].rstrip(": ")
        values = [str(a) for a in args[:placeholders]]
        values += [""] * (placeholders - len(values))
        return self.message.format(*values)

    @classmethod
    def retryable_kinds(cls) -> frozenset["ErrorKind"]:
        return frozenset(kind for kind in cls if kind.retryable)


class AgentError(BaseModel):
    """Error attached to every AgentOutput (SUCCESS when there is none)."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str

    @property
    def is_success(self) -> bool:
        return self.kind is ErrorKind.SUCCESS

    @classmethod
    def success(cls) -> "AgentError":
        return cls(kind=ErrorKind.SUCCESS, message=ErrorKind.SUCCESS.message)

    @classmethod
    def of(cls, kind: ErrorKind, *args: object) -> "AgentError":
        return cls(kind=kind, message=kind.render(*args))

    @classmethod
    def from_exception(cls, kind: ErrorKind, exc: BaseException) -> "AgentError":
        return cls.of(kind, root_cause_message(exc))


def root_cause(exc: BaseException) -> BaseException:
    """Walk the ``__cause__``/``__context__`` chain down to the innermost error."""
    seen = {id(exc)}
    current = exc
    while True:
        nxt = current.__cause__ or current.__context__
        if nxt is None or id(nxt) in seen:
            return current
        seen.add(id(nxt))
        current = nxt


def root_cause_message(exc: BaseException) -> str:
    cause = root_cause(exc)
    return str(cause) or type(cause).__name__


# ============================================================================
# Exceptions
# ============================================================================


class AgentLoopError(Exception):
    """Base class for errors raised by agentloop itself."""


class ToolRegistrationError(AgentLoopError, ValueError):
    """Raised when a tool cannot be added to a catalogue."""


class ToolCallFailure(AgentLoopError):
    """
    Raised from a tool body to report a failure of a specific kind.

    Tools raise this for deliberate local failures; the default kind is a
    permanent failure, which is never retried.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.TOOL_CALL_PERMANENT_FAILURE,
    ):
        super().__init__(message)
        self.kind = kind


__all__ = [
    "ErrorKind",
    "AgentError",
    "AgentLoopError",
    "ToolRegistrationError",
    "ToolCallFailure",
    "root_cause",
    "root_cause_message",
]
