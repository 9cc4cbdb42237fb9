"""
Tool run approval.

Before any tool is executed the executor asks a ToolRunApprovalSeeker whether
the call may proceed. Seekers may answer synchronously or return an
awaitable (for example when a human has to confirm the call).
"""

import inspect
from typing import Any, Awaitable, Callable, Iterable, Protocol, Union, runtime_checkable

from agentloop.domain.context import RunContext
from agentloop.domain.messages import ToolCallRequest
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

ApprovalResult = Union[bool, Awaitable[bool]]


@runtime_checkable
class ToolRunApprovalSeeker(Protocol):
    """Decides whether a requested tool call may run."""

    def seek_approval(
        self, agent: Any, context: RunContext, request: ToolCallRequest
    ) -> ApprovalResult: ...


class ApproveAllToolRuns:
    """Default policy: every call is approved."""

    def seek_approval(
        self, agent: Any, context: RunContext, request: ToolCallRequest
    ) -> bool:
        return True


class ToolAllowList:
    """
    Approve only the listed tools.

    Tools not in ``allowed`` are denied, which is useful for read-only agents
    sharing a catalogue with side-effecting tools.
    """

    def __init__(self, allowed: Iterable[str]):
        self.allowed = frozenset(allowed)

    def seek_approval(
        self, agent: Any, context: RunContext, request: ToolCallRequest
    ) -> bool:
        return request.tool_name in self.allowed


class CallbackApprovalSeeker:
    """Adapt a plain function ``(agent, context, request) -> bool`` to a seeker."""

    def __init__(self, callback: Callable[[Any, RunContext, ToolCallRequest], ApprovalResult]):
        self.callback = callback

    def seek_approval(
        self, agent: Any, context: RunContext, request: ToolCallRequest
    ) -> ApprovalResult:
        return self.callback(agent, context, request)


async def resolve_approval(
    seeker: ToolRunApprovalSeeker,
    agent: Any,
    context: RunContext,
    request: ToolCallRequest,
) -> bool:
    """Ask the seeker and await the answer when it is asynchronous."""
    decision = seeker.seek_approval(agent, context, request)
    if inspect.isawaitable(decision):
        decision = await decision
    approved = bool(decision)
    if not approved:
        logger.info(
            "tool_call_denied",
            tool_name=request.tool_name,
            tool_call_id=request.tool_call_id,
            run_id=context.run_id,
        )
    return approved


__all__ = [
    "ToolRunApprovalSeeker",
    "ApprovalResult",
    "ApproveAllToolRuns",
    "ToolAllowList",
    "CallbackApprovalSeeker",
    "resolve_approval",
]
