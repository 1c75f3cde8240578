"""Event dispatcher: an in-memory typed publish/subscribe bus.

Delivery is fire-and-forget per handler. Synchronous handlers run inline,
coroutine handlers are scheduled on the running loop (or run to completion
with ``asyncio.run`` when no loop is running). A failing handler is logged
and never keeps the other handlers of the same event from running. Nothing
is stored: a handler subscribed after ``publish`` never sees that event.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Event types produced and consumed by the pipeline (``domain.verb``)."""
    RESUME_UPLOADED = "resume.uploaded"
    RESUME_PARSED = "resume.parsed"
    RESUME_PARSING_FAILED = "resume.parsing_failed"
    MATCH_REQUESTED = "match.requested"
    MATCH_SUGGESTIONS_GENERATED = "match.suggestions_generated"
    TEAM_FORMATION_REQUESTED = "team.formation_requested"
    TEAM_FORMED = "team.formed"
    TEAM_FORMATION_FAILED = "team.formation_failed"
    AGENT_STARTED = "agent.started"
    AGENT_STOPPED = "agent.stopped"
    AGENT_TASK_STARTED = "agent.task_started"
    AGENT_TASK_COMPLETED = "agent.task_completed"
    AGENT_TASK_FAILED = "agent.task_failed"
    SYSTEM_ERROR = "system.error"
    SYSTEM_INFO = "system.info"
    SYSTEM_HEALTH_CHECK = "system.health_check"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def event_type_name(event_type: "EventType | str") -> str:
    """Return the wire name of an event type given as enum member or string."""
    if isinstance(event_type, Enum):
        return str(event_type.value)
    return str(event_type)


class Event(BaseModel):
    """An immutable event delivered to subscribers."""
    model_config = ConfigDict(frozen=True)

    type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)
    source: str = "system"

    @property
    def identity(self) -> tuple[str, datetime]:
        """Deduplication identity: ``(type, timestamp)``."""
        return (self.type, self.timestamp)


Handler = Callable[[Event], Any] | Callable[[Event], Awaitable[Any]]


class EventDispatcher:
    """Typed publish/subscribe bus with per-handler error isolation."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, event_type: EventType | str, handler: Handler) -> None:
        """Register a handler for an event type."""
        name = event_type_name(event_type)
        self._handlers[name].append(handler)
        logger.debug("Handler subscribed to event type: %s", name)

    def unsubscribe(self, event_type: EventType | str, handler: Handler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        name = event_type_name(event_type)
        handlers = self._handlers.get(name)
        if not handlers or handler not in handlers:
            return False

        handlers.remove(handler)
        if not handlers:
            del self._handlers[name]
        return True

    def publish(
        self,
        event_type: EventType | str,
        payload: Optional[dict[str, Any]] = None,
        source: str = "system",
    ) -> Event:
        """Deliver a new event to every handler registered for its type."""
        event = Event(
            type=event_type_name(event_type),
            payload=dict(payload or {}),
            source=source,
        )

        handlers = list(self._handlers.get(event.type, []))
        for handler in handlers:
            self._dispatch(handler, event)

        logger.debug(
            "Event published: %s (source=%s, handlers=%d)",
            event.type, event.source, len(handlers),
        )
        return event

    def list_types(self) -> list[str]:
        """List event types that currently have subscribers."""
        return [name for name, handlers in self._handlers.items() if handlers]

    def count_subscribers(self, event_type: EventType | str) -> int:
        """Get the number of handlers registered for an event type."""
        return len(self._handlers.get(event_type_name(event_type), []))

    def pending_count(self) -> int:
        """Number of asynchronous handler invocations still in flight."""
        return sum(1 for task in self._pending if not task.done())

    async def drain(self) -> None:
        """Wait until handler tasks scheduled on the current loop have settled."""
        loop = asyncio.get_running_loop()
        current = asyncio.current_task()

        while True:
            pending = [
                task for task in self._pending
                if task is not current and not task.done() and task.get_loop() is loop
            ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def clear(self) -> None:
        """Remove every subscription."""
        self._handlers.clear()

    def _dispatch(self, handler: Handler, event: Event) -> None:
        try:
            result = handler(event)
        except Exception:
            logger.exception("Error in event handler for %s", event.type)
            return

        if not inspect.isawaitable(result):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop: run the handler and whatever it publishes to completion.
            asyncio.run(self._settle(result, event))
        else:
            task = loop.create_task(self._guard(result, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _guard(self, awaitable: Awaitable[Any], event: Event) -> None:
        try:
            await awaitable
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Error in event handler for %s", event.type)

    async def _settle(self, awaitable: Awaitable[Any], event: Event) -> None:
        await self._guard(awaitable, event)
        await self.drain()
