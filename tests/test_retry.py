import pytest

from agentloop.agent import Agent, AgentOutput, retry_exchange
from agentloop.config.schema import AgentSetup, RetrySetup
from agentloop.config.settings import settings
from agentloop.domain.errors import AgentError, ErrorKind
from agentloop.providers.llm.scripted import ScriptedModel, ScriptedTurn


def make_agent(model, retry_setup: RetrySetup) -> Agent:
    return Agent("retrier", "Answer the question", str, AgentSetup(model=model, retry_setup=retry_setup))


def test_retry_setup_defaults():
    retry = RetrySetup()

    assert retry.stop_after_attempt == settings.retry_max_attempts
    assert retry.delay_after_failed_attempt == settings.retry_delay_seconds
    assert retry.retriable_error_kinds == ErrorKind.retryable_kinds()
    assert ErrorKind.GENERIC_MODEL_CALL_FAILURE in retry.retriable_error_kinds
    assert ErrorKind.TOOL_CALL_TIMEOUT not in retry.retriable_error_kinds


def test_retry_setup_non_positive_attempts_fall_back_to_default():
    assert RetrySetup(stop_after_attempt=0).stop_after_attempt == settings.retry_max_attempts
    assert RetrySetup(stop_after_attempt=-2).stop_after_attempt == settings.retry_max_attempts


@pytest.mark.asyncio
async def test_retryable_error_is_reattempted_with_history_kept(fast_retry):
    model = ScriptedModel(
        turns=[
            ScriptedTurn.fail(ErrorKind.GENERIC_MODEL_CALL_FAILURE, "upstream 500"),
            ScriptedTurn.final("42"),
        ]
    )
    agent = make_agent(model, fast_retry)

    output = await agent.execute_async("What is the answer?")

    assert output.is_success
    assert output.data == "42"
    assert model.calls_made == 2
    first_attempt, second_attempt = model.received
    assert second_attempt == first_attempt
    assert output.all_messages[: len(first_attempt)] == first_attempt
    assert output.usage.requests_for_run == 2


@pytest.mark.asyncio
async def test_retry_exhaustion_returns_last_error(fast_retry):
    model = ScriptedModel(
        turns=[ScriptedTurn.fail(ErrorKind.MODEL_CALL_RATE_LIMIT_EXCEEDED, "slow down")] * 3
    )
    agent = make_agent(model, fast_retry)

    output = await agent.execute_async("What is the answer?")

    assert output.error.kind is ErrorKind.MODEL_CALL_RATE_LIMIT_EXCEEDED
    assert output.error.message == "Rate limit exceeded: slow down"
    assert model.calls_made == 3


@pytest.mark.asyncio
async def test_non_retryable_error_is_not_reattempted(fast_retry):
    model = ScriptedModel(turns=[ScriptedTurn.fail(ErrorKind.REFUSED, "unsafe")])
    agent = make_agent(model, fast_retry)

    output = await agent.execute_async("What is the answer?")

    assert output.error.kind is ErrorKind.REFUSED
    assert model.calls_made == 1


@pytest.mark.asyncio
async def test_custom_retriable_kinds():
    retry = RetrySetup(
        stop_after_attempt=2,
        delay_after_failed_attempt=0,
        retriable_error_kinds={ErrorKind.REFUSED},
    )
    model = ScriptedModel(
        turns=[ScriptedTurn.fail(ErrorKind.REFUSED, "unsafe"), ScriptedTurn.final("fine")]
    )
    agent = make_agent(model, retry)

    output = await agent.execute_async("What is the answer?")

    assert output.data == "fine"
    assert model.calls_made == 2


@pytest.mark.asyncio
async def test_retry_exchange_direct():
    attempts = []

    async def attempt() -> AgentOutput:
        attempts.append(len(attempts) + 1)
        if len(attempts) < 2:
            return AgentOutput(error=AgentError.of(ErrorKind.NO_RESPONSE))
        return AgentOutput(data="done")

    output = await retry_exchange(attempt, RetrySetup(stop_after_attempt=5, delay_after_failed_attempt=0))

    assert output.data == "done"
    assert attempts == [1, 2]


@pytest.mark.asyncio
async def test_retry_exchange_veto():
    attempts = []

    async def attempt() -> AgentOutput:
        attempts.append(1)
        return AgentOutput(error=AgentError.of(ErrorKind.NO_RESPONSE))

    output = await retry_exchange(
        attempt,
        RetrySetup(stop_after_attempt=5, delay_after_failed_attempt=0),
        should_retry=lambda _: False,
    )

    assert output.error.kind is ErrorKind.NO_RESPONSE
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_retry_exchange_does_not_retry_exceptions():
    attempts = []

    async def attempt() -> AgentOutput:
        attempts.append(1)
        raise ConnectionError("socket closed")

    with pytest.raises(ConnectionError):
        await retry_exchange(attempt, RetrySetup(stop_after_attempt=3, delay_after_failed_attempt=0))

    assert len(attempts) == 1
