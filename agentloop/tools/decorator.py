"""
Tool decorator
"""

from typing import Callable, overload

from .base import InternalTool
from .local import DEFAULT_TIMEOUT, function_tool


@overload
def tool(func: Callable) -> InternalTool: ...


@overload
def tool(
    func: None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    retries: int = 0,
    timeout_seconds: float | None = DEFAULT_TIMEOUT,
    strict_schema: bool = False,
) -> Callable[[Callable], InternalTool]: ...


def tool(
    func: Callable | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    retries: int = 0,
    timeout_seconds: float | None = DEFAULT_TIMEOUT,
    strict_schema: bool = False,
):
    """
    Decorator to convert a function into an InternalTool.

    Usable bare (``@tool``) or with options (``@tool(retries=2)``). The
    decorated object is still callable like the original function.

    Args:
        func: The function to decorate
        name: Tool name override
        description: Tool description override
        retries: Extra invocations after a retryable failure
        timeout_seconds: Per-attempt timeout; None disables it
        strict_schema: Ask the provider to enforce the schema strictly

    Returns:
        InternalTool instance, or a decorator producing one
    """

    def wrap(f: Callable) -> InternalTool:
        return function_tool(
            f,
            name=name,
            description=description,
            retries=retries,
            timeout_seconds=timeout_seconds,
            strict_schema=strict_schema,
        )

    if func is not None:
        return wrap(func)
    return wrap


__all__ = ["tool"]
