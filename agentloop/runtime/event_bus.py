"""
EventBus - observer list for agent lifecycle events.

An EventBus is owned by an AgentSetup and injected into every run, never
looked up globally. Observers are plain callables (sync or async) taking an
AgentEvent. Delivery is fire-and-forget: an observer that raises is logged and
does not affect the run or the other observers.

Usage:
    bus = EventBus()
    events = []
    bus.subscribe(events.append)
    agent = Agent(..., setup=AgentSetup(model=model, event_bus=bus))
"""

import asyncio
import inspect
import threading
from typing import Any, Awaitable, Callable, Union

from agentloop.domain.events import AgentEvent, EventType
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[AgentEvent], Union[None, Awaitable[None]]]


class EventBus:
    """Explicit observer list; thread-safe subscribe/notify."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []
        self._lock = threading.Lock()
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, handler: EventHandler) -> EventHandler:
        """Register a handler. Returns it so it can be used as a decorator."""
        with self._lock:
            self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    @property
    def handlers(self) -> list[EventHandler]:
        with self._lock:
            return list(self._handlers)

    def notify(self, event: AgentEvent) -> None:
        """
        Deliver an event to all handlers.

        Coroutine handlers are scheduled on the running loop when there is
        one; synchronous handlers are called inline.
        """
        for handler in self.handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    self._schedule(result, event)
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    event_type=event.type.value,
                    handler=getattr(handler, "__name__", repr(handler)),
                    error=str(e),
                    exc_info=True,
                )

    def _schedule(self, awaitable: Awaitable[Any], event: AgentEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(_await(awaitable))
            return
        task = loop.create_task(_await(awaitable))
        self._pending.add(task)
        task.add_done_callback(lambda t: self._on_task_done(t, event))

    def _on_task_done(self, task: asyncio.Task, event: AgentEvent) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "event_handler_failed",
                event_type=event.type.value,
                error=str(error),
            )


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


class CapturingObserver:
    """
    Observer that records every event it sees.

    Handy in tests and for debugging a single run:
        observer = CapturingObserver()
        bus.subscribe(observer)
        ...
        observer.of_type(EventType.TOOL_CALL_COMPLETED)
    """

    def __init__(self) -> None:
        self.events: list[AgentEvent] = []
        self._lock = threading.Lock()

    def __call__(self, event: AgentEvent) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type: EventType) -> list[AgentEvent]:
        with self._lock:
            return [e for e in self.events if e.type == event_type]

    def clear(self) -> None:
        with self._lock:
            self.events.clear()


__all__ = ["EventBus", "EventHandler", "CapturingObserver"]
