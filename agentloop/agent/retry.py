"""
Retry of a whole model exchange.

One attempt is the full turn loop. An attempt whose output carries a
retriable error kind is re-run, on the same (never truncated) history, with a
fixed delay between attempts. Exceptions are not retried.
"""

from typing import Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_fixed

from agentloop.agent.output import AgentOutput
from agentloop.config.schema import RetrySetup
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)


async def retry_exchange(
    run_attempt: Callable[[], Awaitable[AgentOutput]],
    retry_setup: RetrySetup,
    should_retry: Callable[[AgentOutput], bool] | None = None,
    **log_context,
) -> AgentOutput:
    """
    Run ``run_attempt`` until it succeeds or the policy gives up.

    Args:
        run_attempt: Coroutine function performing one attempt
        retry_setup: Attempt count, delay and retriable kinds
        should_retry: Extra veto on retrying a given output
        **log_context: Fields added to retry log events

    Returns:
        The first non-retriable output, or the last output on exhaustion
    """

    def retriable(output: AgentOutput) -> bool:
        if output.is_success or not retry_setup.is_retriable(output.error.kind):
            return False
        return should_retry is None or should_retry(output)

    def log_retry(retry_state: RetryCallState) -> None:
        output: AgentOutput = retry_state.outcome.result()
        logger.warning(
            "model_exchange_retrying",
            attempt=retry_state.attempt_number,
            max_attempts=retry_setup.stop_after_attempt,
            error_kind=output.error.kind.value,
            error=output.error.message,
            **log_context,
        )

    def give_up(retry_state: RetryCallState) -> AgentOutput:
        output: AgentOutput = retry_state.outcome.result()
        logger.error(
            "model_exchange_attempts_exhausted",
            attempts=retry_state.attempt_number,
            error_kind=output.error.kind.value,
            **log_context,
        )
        return output

    retrying = AsyncRetrying(
        stop=stop_after_attempt(retry_setup.stop_after_attempt),
        wait=wait_fixed(retry_setup.delay_after_failed_attempt),
        retry=retry_if_result(retriable),
        before_sleep=log_retry,
        retry_error_callback=give_up,
    )
    return await retrying(run_attempt)


__all__ = ["retry_exchange"]
