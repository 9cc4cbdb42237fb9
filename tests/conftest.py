from concurrent.futures import ThreadPoolExecutor

import pytest

from agentloop.config.schema import AgentSetup, RetrySetup
from agentloop.domain.context import RequestMetadata, RunContext
from agentloop.providers.llm.scripted import ScriptedModel
from agentloop.runtime.event_bus import CapturingObserver, EventBus


@pytest.fixture
def observer():
    return CapturingObserver()


@pytest.fixture
def event_bus(observer):
    bus = EventBus()
    bus.subscribe(observer)
    return bus


@pytest.fixture
def thread_pool():
    pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="test-tools")
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def fast_retry():
    return RetrySetup(stop_after_attempt=3, delay_after_failed_attempt=0)


@pytest.fixture
def run_context(event_bus, thread_pool, fast_retry):
    """RunContext for driving the tool executor directly."""
    setup = AgentSetup(
        model=ScriptedModel(),
        event_bus=event_bus,
        executor=thread_pool,
        retry_setup=fast_retry,
    )
    return RunContext(
        run_id="run-test",
        agent_name="test-agent",
        request="hello",
        metadata=RequestMetadata(session_id="session-1", user_id="user-1"),
        setup=setup,
    )
