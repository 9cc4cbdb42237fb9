"""
Tool catalogue types.

A tool catalogue maps a unique tool name to a Tool. A Tool is one of two
variants:

- InternalTool: an in-process Python function with a pydantic argument model
- ExternalTool: a tool executed elsewhere (HTTP, MCP, another process) through
  an injected handler

The executor matches on the variant at a single dispatch site.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agentloop.config.settings import settings
from agentloop.domain.context import RunContext
from agentloop.domain.errors import ErrorKind, ToolCallFailure


class ToolDefinition(BaseModel):
    """
    Static description of a tool as presented to the model.

    Attributes:
        name: Unique name within a catalogue
        description: Natural language description for the model
        context_aware: Whether the tool receives the RunContext
        retries: Extra invocations allowed after a retryable failure
        timeout_seconds: Per-attempt timeout (None disables it)
        strict_schema: Ask the provider to enforce the schema strictly
        parameters: JSON schema of the arguments
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str = ""
    context_aware: bool = False
    retries: int = Field(default=0, ge=0)
    timeout_seconds: float | None = Field(
        default_factory=lambda: settings.tool_timeout_seconds, gt=0
    )
    strict_schema: bool = False
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_schema(self) -> dict[str, Any]:
        """Provider-neutral function schema."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
            "strict": self.strict_schema,
        }


class InvalidToolArguments(ToolCallFailure):
    """Arguments supplied by the model do not match the tool's argument model."""

    def __init__(self, tool_name: str, error: Exception):
        super().__init__(
            f"Invalid arguments for tool {tool_name}: {error}",
            ErrorKind.TOOL_CALL_PERMANENT_FAILURE,
        )


# ============================================================================
# Internal tools
# ============================================================================


@dataclass(frozen=True)
class InternalTool:
    """
    In-process tool wrapping a Python function.

    ``context_parameter`` names the function parameter that receives the
    RunContext, when the tool is context aware.
    """

    definition: ToolDefinition
    function: Callable[..., Any]
    args_model: type[BaseModel]
    context_parameter: str | None = None

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.function)

    def parse_arguments(self, arguments: str | None) -> dict[str, Any]:
        """Decode the model's JSON arguments into keyword arguments."""
        try:
            parsed = self.args_model.model_validate_json(arguments or "{}")
        except ValidationError as e:
            raise InvalidToolArguments(self.name, e) from e
        # Keep nested models as models rather than dumping them to dicts
        return {field: getattr(parsed, field) for field in type(parsed).model_fields}

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.function(*args, **kwargs)


# ============================================================================
# External tools
# ============================================================================


class ExternalToolResponse(BaseModel):
    """Result reported by an external tool handler."""

    model_config = ConfigDict(frozen=True)

    response: str
    error_kind: ErrorKind = ErrorKind.SUCCESS

    @property
    def is_success(self) -> bool:
        return self.error_kind is ErrorKind.SUCCESS


ExternalToolHandler = Callable[
    [RunContext, str, str],
    Union[ExternalToolResponse, Awaitable[ExternalToolResponse]],
]


@dataclass(frozen=True)
class ExternalTool:
    """
    Tool executed outside the process.

    The handler receives ``(context, tool_name, arguments_json)`` and returns
    an ExternalToolResponse, synchronously or as an awaitable.
    """

    definition: ToolDefinition
    handler: ExternalToolHandler

    @property
    def name(self) -> str:
        return self.definition.name


Tool = Union[InternalTool, ExternalTool]

# name -> Tool
ToolCatalogue = dict[str, Tool]


__all__ = [
    "ToolDefinition",
    "InvalidToolArguments",
    "InternalTool",
    "ExternalTool",
    "ExternalToolResponse",
    "ExternalToolHandler",
    "Tool",
    "ToolCatalogue",
]
