"""
Tool executor.

Runs model-requested tool calls under approval, timeout and retry
constraints. Failures never escape as exceptions: every call yields exactly
one ToolCallResponse whose ``error_kind`` says what happened.
"""

import asyncio
import functools
import inspect
import time
from typing import Any, Callable, NamedTuple

from pydantic_core import PydanticSerializationError, to_json
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_none

from agentloop.domain.context import RunContext
from agentloop.domain.errors import ErrorKind, ToolCallFailure, root_cause_message
from agentloop.domain.events import (
    AgentEvent,
    ToolCallApprovalDeniedEvent,
    ToolCallCompletedEvent,
    ToolCalledEvent,
)
from agentloop.domain.messages import ToolCallRequest, ToolCallResponse
from agentloop.tools.approval import ApproveAllToolRuns, ToolRunApprovalSeeker, resolve_approval
from agentloop.tools.base import ExternalTool, InternalTool, Tool, ToolCatalogue
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)


class _Attempt(NamedTuple):
    """Outcome of one tool invocation."""

    kind: ErrorKind
    value: Any = None
    message: str = ""


# Only these kinds are ever re-invoked at the tool level; the run's
# RetrySetup may narrow the set further.
TOOL_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.TOOL_CALL_TEMPORARY_FAILURE, ErrorKind.FORCED_RETRY}
)


def _retry_predicate(context: RunContext) -> Callable[[_Attempt], bool]:
    retry_setup = context.setup.retry_setup
    allowed = TOOL_RETRYABLE_KINDS
    if retry_setup is not None:
        allowed = allowed & retry_setup.retriable_error_kinds

    def should_retry(attempt: _Attempt) -> bool:
        return attempt.kind in allowed

    return should_retry


def _last_attempt(retry_state: RetryCallState) -> _Attempt:
    return retry_state.outcome.result()


def render_payload(value: Any) -> str:
    """
    Convert a tool's return value to the response payload.

    None becomes "success", scalars use ``str()``, anything else is
    serialized to JSON by pydantic.
    """
    if value is None:
        return "success"
    if isinstance(value, (str, int, float, bool)):
        return str(value)
    return to_json(value).decode()


class ToolExecutor:
    """
    Executes tool calls for one agent.

    Args:
        agent: The agent on whose behalf tools run (handed to the approval seeker)
        approval_seeker: Approval policy (default: approve everything)
    """

    def __init__(
        self,
        agent: Any = None,
        approval_seeker: ToolRunApprovalSeeker | None = None,
    ):
        self.agent = agent
        self.approval_seeker = approval_seeker or ApproveAllToolRuns()

    async def run_batch(
        self,
        context: RunContext,
        catalogue: ToolCatalogue,
        requests: list[ToolCallRequest],
    ) -> list[ToolCallResponse]:
        """
        Execute a turn's tool calls concurrently.

        Returns:
            Responses in the same order as ``requests``
        """
        tasks = [self.run_tool(context, catalogue, request) for request in requests]
        return list(await asyncio.gather(*tasks))

    async def run_tool(
        self,
        context: RunContext,
        catalogue: ToolCatalogue,
        request: ToolCallRequest,
    ) -> ToolCallResponse:
        """
        Execute a single tool call.

        Args:
            context: Run context of the calling run
            catalogue: Tools available to the run
            request: Tool call requested by the model

        Returns:
            ToolCallResponse carrying the payload or the failure
        """
        try:
            approved = await resolve_approval(self.approval_seeker, self.agent, context, request)
            denial = f"Tool call was not approved: {request.tool_name}"
        except Exception as e:
            logger.error(
                "tool_approval_failed",
                tool_name=request.tool_name,
                tool_call_id=request.tool_call_id,
                run_id=context.run_id,
                error=str(e),
                exc_info=True,
            )
            approved = False
            denial = (
                f"Tool call was not approved: {request.tool_name}. "
                f"Approval failed: {root_cause_message(e)}"
            )

        if not approved:
            self._emit(
                context,
                ToolCallApprovalDeniedEvent(
                    **self._event_ids(context),
                    tool_call_id=request.tool_call_id,
                    tool_name=request.tool_name,
                ),
            )
            return self._response(
                context,
                request,
                ErrorKind.TOOL_CALL_PERMANENT_FAILURE,
                denial,
            )

        tool = catalogue.get(request.tool_name)
        if tool is None:
            available = ", ".join(sorted(catalogue)) or "none"
            logger.warning(
                "tool_not_found",
                tool_name=request.tool_name,
                available=available,
                run_id=context.run_id,
            )
            return self._response(
                context,
                request,
                ErrorKind.TOOL_CALL_PERMANENT_FAILURE,
                f"{ErrorKind.TOOL_CALL_PERMANENT_FAILURE.render(request.tool_name)}. "
                f"Tool not found. Available tools: {available}",
            )

        self._emit(
            context,
            ToolCalledEvent(
                **self._event_ids(context),
                tool_call_id=request.tool_call_id,
                tool_name=request.tool_name,
                arguments=request.arguments,
            ),
        )
        context.usage.increment_tool_calls_for_run()
        start_time = time.perf_counter()

        attempt = await self._invoke_with_retries(context, tool, request)
        if attempt.kind is ErrorKind.SUCCESS:
            try:
                kind, payload = ErrorKind.SUCCESS, render_payload(attempt.value)
            except (PydanticSerializationError, TypeError, ValueError) as e:
                kind = ErrorKind.SERIALIZATION_ERROR
                payload = ErrorKind.SERIALIZATION_ERROR.render(root_cause_message(e))
        else:
            kind, payload = attempt.kind, attempt.message

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        response = self._response(context, request, kind, payload)
        self._emit(
            context,
            ToolCallCompletedEvent(
                **self._event_ids(context),
                tool_call_id=request.tool_call_id,
                tool_name=request.tool_name,
                error_kind=kind,
                success=response.is_success,
                response=payload,
                elapsed_ms=elapsed_ms,
            ),
        )
        logger.debug(
            "tool_call_completed",
            tool_name=request.tool_name,
            tool_call_id=request.tool_call_id,
            error_kind=kind.value,
            elapsed_ms=round(elapsed_ms, 2),
        )
        return response

    # ------------------------------------------------------------------ invocation

    async def _invoke_with_retries(
        self, context: RunContext, tool: Tool, request: ToolCallRequest
    ) -> _Attempt:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(tool.definition.retries + 1),
            wait=wait_none(),
            retry=retry_if_result(_retry_predicate(context)),
            retry_error_callback=_last_attempt,
            before_sleep=functools.partial(self._log_retry, request),
        )
        return await retrying(self._invoke_once, context, tool, request)

    @staticmethod
    def _log_retry(request: ToolCallRequest, retry_state: RetryCallState) -> None:
        attempt: _Attempt = retry_state.outcome.result()
        logger.warning(
            "tool_call_retrying",
            tool_name=request.tool_name,
            tool_call_id=request.tool_call_id,
            attempt=retry_state.attempt_number,
            error_kind=attempt.kind.value,
            error=attempt.message,
        )

    async def _invoke_once(
        self, context: RunContext, tool: Tool, request: ToolCallRequest
    ) -> _Attempt:
        timeout = tool.definition.timeout_seconds
        try:
            value = await asyncio.wait_for(self._dispatch(context, tool, request), timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "tool_call_timeout",
                tool_name=request.tool_name,
                timeout_seconds=timeout,
            )
            return _Attempt(
                ErrorKind.TOOL_CALL_TIMEOUT,
                message=ErrorKind.TOOL_CALL_TIMEOUT.render(request.tool_name),
            )
        except ToolCallFailure as e:
            return _Attempt(e.kind, message=str(e))
        except Exception as e:
            logger.warning(
                "tool_execution_exception",
                tool_name=request.tool_name,
                error=str(e),
                exc_info=True,
            )
            return _Attempt(
                ErrorKind.TOOL_CALL_TEMPORARY_FAILURE,
                message=f"{ErrorKind.TOOL_CALL_TEMPORARY_FAILURE.render(request.tool_name)}. "
                f"Error: {root_cause_message(e)}",
            )
        return _Attempt(ErrorKind.SUCCESS, value=value)

    async def _dispatch(
        self, context: RunContext, tool: Tool, request: ToolCallRequest
    ) -> Any:
        match tool:
            case InternalTool():
                kwargs = tool.parse_arguments(request.arguments)
                if tool.context_parameter:
                    kwargs[tool.context_parameter] = context
                if tool.is_async:
                    return await tool.function(**kwargs)
                loop = asyncio.get_running_loop()
                return await loop.run_in_executor(
                    context.setup.executor, functools.partial(tool.function, **kwargs)
                )
            case ExternalTool():
                result = tool.handler(context, tool.name, request.arguments)
                if inspect.isawaitable(result):
                    result = await result
                if not result.is_success:
                    raise ToolCallFailure(result.response, result.error_kind)
                return result.response
            case _:
                raise ToolCallFailure(f"Unsupported tool type: {type(tool).__name__}")

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def _response(
        context: RunContext, request: ToolCallRequest, kind: ErrorKind, payload: str
    ) -> ToolCallResponse:
        return ToolCallResponse(
            session_id=context.session_id,
            run_id=context.run_id,
            tool_call_id=request.tool_call_id,
            tool_name=request.tool_name,
            error_kind=kind,
            response=payload,
        )

    @staticmethod
    def _event_ids(context: RunContext) -> dict[str, Any]:
        return {
            "agent_name": context.agent_name,
            "run_id": context.run_id,
            "session_id": context.session_id,
            "user_id": context.user_id,
        }

    @staticmethod
    def _emit(context: RunContext, event: AgentEvent) -> None:
        if context.setup.event_bus is not None:
            context.setup.event_bus.notify(event)


__all__ = ["ToolExecutor", "render_payload", "TOOL_RETRYABLE_KINDS"]
