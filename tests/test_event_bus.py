import asyncio

import pytest

from agentloop.domain.events import EventType, InputReceivedEvent, OutputErrorEvent
from agentloop.domain.errors import ErrorKind
from agentloop.runtime import CapturingObserver, EventBus


def make_event(content: str = "hello") -> InputReceivedEvent:
    return InputReceivedEvent(agent_name="bus-test", run_id="run-1", content=content)


def test_sync_handlers_receive_events_in_order():
    bus = EventBus()
    seen = []
    bus.subscribe(lambda e: seen.append(("first", e.content)))
    bus.subscribe(lambda e: seen.append(("second", e.content)))

    bus.notify(make_event("a"))

    assert seen == [("first", "a"), ("second", "a")]


def test_failing_handler_does_not_stop_others():
    bus = EventBus()
    observer = CapturingObserver()

    @bus.subscribe
    def broken(event):
        raise RuntimeError("observer bug")

    bus.subscribe(observer)
    bus.notify(make_event())

    assert len(observer.events) == 1


def test_unsubscribe():
    bus = EventBus()
    observer = CapturingObserver()
    bus.subscribe(observer)
    bus.unsubscribe(observer)
    bus.unsubscribe(observer)

    bus.notify(make_event())

    assert observer.events == []
    assert bus.handlers == []


def test_async_handler_without_running_loop():
    bus = EventBus()
    seen = []

    async def handler(event):
        seen.append(event.content)

    bus.subscribe(handler)
    bus.notify(make_event("no loop"))

    assert seen == ["no loop"]


@pytest.mark.asyncio
async def test_async_handler_scheduled_on_running_loop():
    bus = EventBus()
    delivered = asyncio.Event()
    seen = []

    async def handler(event):
        seen.append(event.content)
        delivered.set()

    async def broken(event):
        raise RuntimeError("async observer bug")

    bus.subscribe(broken)
    bus.subscribe(handler)
    bus.notify(make_event("in loop"))

    await asyncio.wait_for(delivered.wait(), timeout=1)
    assert seen == ["in loop"]


def test_capturing_observer_filters_by_type():
    observer = CapturingObserver()
    observer(make_event())
    observer(
        OutputErrorEvent(
            agent_name="bus-test",
            run_id="run-1",
            error_kind=ErrorKind.NO_RESPONSE,
            message="No response from model",
            elapsed_ms=1.0,
        )
    )

    assert [e.type for e in observer.events] == [EventType.INPUT_RECEIVED, EventType.OUTPUT_ERROR]
    assert len(observer.of_type(EventType.OUTPUT_ERROR)) == 1

    observer.clear()
    assert observer.events == []


def test_events_dump_to_json():
    data = make_event("payload").model_dump(mode="json")

    assert data["type"] == "input_received"
    assert data["content"] == "payload"
    assert data["event_id"]
