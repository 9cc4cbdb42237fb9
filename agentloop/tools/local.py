"""
Build InternalTools from plain Python functions.

The argument model is created dynamically from the function signature with
pydantic's ``create_model``; its JSON schema becomes the tool's parameter
schema. A parameter annotated with ``RunContext`` is not part of the schema:
it marks the tool as context aware and receives the run context at call time.
"""

import inspect
from typing import Any, Callable, get_origin, get_type_hints

from pydantic import BaseModel, create_model

from agentloop.domain.context import RunContext
from agentloop.domain.errors import ToolRegistrationError
from agentloop.tools.base import InternalTool, ToolDefinition

# Marker for "use the configured default timeout"
DEFAULT_TIMEOUT: Any = object()


def _is_context_annotation(annotation: Any) -> bool:
    return annotation is RunContext or get_origin(annotation) is RunContext


def _create_args_model(
    func: Callable, tool_name: str
) -> tuple[type[BaseModel], str | None]:
    """Dynamically create a Pydantic model from function signature."""
    sig = inspect.signature(func)
    try:
        type_hints = get_type_hints(func)
    except (NameError, TypeError) as e:
        raise ToolRegistrationError(
            f"Cannot resolve type hints for tool {tool_name}: {e}"
        ) from e

    fields: dict[str, Any] = {}
    context_parameter = None
    for param_name, param in sig.parameters.items():
        if param_name in ("self", "cls"):
            continue
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            raise ToolRegistrationError(
                f"Tool {tool_name} cannot take *args or **kwargs ({param_name})"
            )

        annotation = type_hints.get(param_name, Any)
        if _is_context_annotation(annotation):
            if context_parameter is not None:
                raise ToolRegistrationError(
                    f"Tool {tool_name} declares more than one RunContext parameter"
                )
            context_parameter = param_name
            continue

        if param.default is inspect.Parameter.empty:
            fields[param_name] = (annotation, ...)
        else:
            fields[param_name] = (annotation, param.default)

    model_name = "".join(part.capitalize() for part in tool_name.split("_")) + "Args"
    return create_model(model_name, **fields), context_parameter


def _parameters_schema(args_model: type[BaseModel]) -> dict[str, Any]:
    schema = args_model.model_json_schema()
    schema.pop("title", None)
    schema.setdefault("properties", {})
    return schema


def function_tool(
    func: Callable,
    *,
    name: str | None = None,
    description: str | None = None,
    retries: int = 0,
    timeout_seconds: float | None = DEFAULT_TIMEOUT,
    strict_schema: bool = False,
) -> InternalTool:
    """
    Convert a function into an InternalTool.

    Args:
        func: Sync or async function; its signature defines the arguments
        name: Tool name (defaults to the function name)
        description: Tool description (defaults to the docstring)
        retries: Extra invocations after a retryable failure
        timeout_seconds: Per-attempt timeout; None disables the timeout
        strict_schema: Ask the provider to enforce the schema strictly

    Returns:
        InternalTool ready to be put in a catalogue
    """
    tool_name = name or func.__name__
    args_model, context_parameter = _create_args_model(func, tool_name)

    definition_fields: dict[str, Any] = {
        "name": tool_name,
        "description": description or inspect.getdoc(func) or "",
        "context_aware": context_parameter is not None,
        "retries": retries,
        "strict_schema": strict_schema,
        "parameters": _parameters_schema(args_model),
    }
    if timeout_seconds is not DEFAULT_TIMEOUT:
        definition_fields["timeout_seconds"] = timeout_seconds

    return InternalTool(
        definition=ToolDefinition(**definition_fields),
        function=func,
        args_model=args_model,
        context_parameter=context_parameter,
    )


__all__ = ["function_tool", "DEFAULT_TIMEOUT"]
