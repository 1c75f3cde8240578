"""Agent runtime shared by every worker.

An agent subscribes to its declared event types when it is constructed and
stays subscribed while stopped; events delivered to a stopped or disabled
agent are dropped. Each running agent keeps a deduplication window keyed by
event identity so the same event is never processed twice within the TTL.
"""

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Hashable, Optional

from pydantic import BaseModel, Field, field_validator

from hackmatch.config import RuntimeConfig
from hackmatch.errors import AgentDisabledError, PayloadValidationError, ProcessingError
from hackmatch.events import Event, EventDispatcher, EventType, event_type_name

logger = logging.getLogger(__name__)


class AgentState(str, Enum):
    """Lifecycle state of an agent."""
    STOPPED = "stopped"
    RUNNING = "running"


class AgentSignal(str, Enum):
    """Local signals an agent emits to its in-process listeners."""
    EVENT_PROCESSED = "event-processed"
    ERROR = "error"


class AgentConfig(BaseModel):
    """Static description of an agent's contract surface."""
    name: str
    description: str = ""
    subscribe_to_events: list[str] = Field(default_factory=list)
    publish_events: list[str] = Field(default_factory=list)
    enabled: bool = True
    serialize_events: bool = False

    @field_validator("subscribe_to_events", "publish_events", mode="before")
    @classmethod
    def _normalize_event_types(cls, value: Any) -> list[str]:
        return [event_type_name(v) for v in value or []]


class AgentMetrics(BaseModel):
    """Counters for processed events and tasks."""
    total_processed: int = 0
    total_failed: int = 0
    total_processing_time_ms: float = 0.0

    @property
    def total_succeeded(self) -> int:
        return self.total_processed - self.total_failed

    @property
    def success_rate(self) -> float:
        """Percentage of successful units of work (0 when nothing ran)."""
        if not self.total_processed:
            return 0.0
        return round(self.total_succeeded / self.total_processed * 100, 2)

    @property
    def average_processing_time_ms(self) -> float:
        if not self.total_processed:
            return 0.0
        return self.total_processing_time_ms / self.total_processed

    def record(self, duration_ms: float, success: bool) -> None:
        self.total_processed += 1
        self.total_processing_time_ms += duration_ms
        if not success:
            self.total_failed += 1

    def summary(self) -> dict[str, Any]:
        return {
            "total_processed": self.total_processed,
            "total_failed": self.total_failed,
            "success_rate": self.success_rate,
            "average_processing_time_ms": round(self.average_processing_time_ms, 3),
        }


class AgentStatus(BaseModel):
    """Point-in-time view of an agent, enriched by the manager."""
    agent_id: str
    name: str
    description: str
    state: AgentState
    enabled: bool
    subscribe_to_events: list[str]
    publish_events: list[str]
    operations: list[str]
    processed_events_count: int
    metrics: dict[str, Any] = Field(default_factory=dict)
    uptime_seconds: float = 0.0
    last_activity: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.state == AgentState.RUNNING


class DedupWindow:
    """Event identities seen recently, with amortized expiry.

    Expired identities are purged each time a new identity is recorded; there
    is no background timer.
    """

    def __init__(self, ttl_seconds: float = 3600.0, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._seen: dict[Hashable, float] = {}

    def __contains__(self, identity: Hashable) -> bool:
        return identity in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def record(self, identity: Hashable) -> None:
        """Remember an identity, then drop entries older than the TTL."""
        self._seen[identity] = self._clock()
        self.purge()

    def purge(self) -> int:
        cutoff = self._clock() - self.ttl_seconds
        expired = [key for key, seen_at in self._seen.items() if seen_at < cutoff]
        for key in expired:
            del self._seen[key]
        return len(expired)

    def clear(self) -> None:
        self._seen.clear()


TaskOperation = Callable[[dict[str, Any]], Any]
SignalListener = Callable[[dict[str, Any]], Any]


class Agent(ABC):
    """Base class for workers reacting to bus events and task invocations.

    Subclasses implement ``process_event`` and register their task
    operations with ``register_operation``.
    """

    def __init__(
        self,
        config: AgentConfig,
        dispatcher: Optional[EventDispatcher] = None,
        agent_id: Optional[str] = None,
        runtime_config: Optional[RuntimeConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        runtime_config = runtime_config or RuntimeConfig()

        self.config = config
        self.agent_id = agent_id or config.name
        self.dispatcher = dispatcher or EventDispatcher()
        self.task_timeout_seconds = runtime_config.task_timeout_seconds
        self.metrics = AgentMetrics()

        self._state = AgentState.STOPPED
        self._dedup = DedupWindow(runtime_config.dedup_ttl_seconds, clock)
        self._listeners: dict[str, list[SignalListener]] = defaultdict(list)
        self._operations: dict[str, TaskOperation] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._subscribed = False

        self._setup_event_listeners()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == AgentState.RUNNING

    def _setup_event_listeners(self) -> None:
        if not self.config.enabled:
            logger.info("[Agent] %s is disabled", self.name)
            return

        for event_type in self.config.subscribe_to_events:
            self.dispatcher.subscribe(event_type, self.handle_event)
        self._subscribed = True

        logger.info(
            "[Agent] %s initialized and listening to %d event types",
            self.name, len(self.config.subscribe_to_events),
        )

    def detach(self) -> None:
        """Remove this agent's subscriptions from the dispatcher."""
        if not self._subscribed:
            return
        for event_type in self.config.subscribe_to_events:
            self.dispatcher.unsubscribe(event_type, self.handle_event)
        self._subscribed = False

    # ============ Lifecycle ============

    def start(self) -> None:
        if self.is_running:
            logger.info("[Agent] %s is already running", self.name)
            return

        self._state = AgentState.RUNNING
        logger.info("[Agent] %s started", self.name)
        self.on_start()

    def stop(self) -> None:
        if not self.is_running:
            logger.info("[Agent] %s is already stopped", self.name)
            return

        self._state = AgentState.STOPPED
        logger.info("[Agent] %s stopped", self.name)
        self.on_stop()

    def on_start(self) -> None:
        """Hook called after the agent transitions to running."""

    def on_stop(self) -> None:
        """Hook called after the agent transitions to stopped."""

    # ============ Event handling ============

    async def handle_event(self, event: Event) -> None:
        """Entry point registered with the dispatcher for every subscription."""
        if not self.config.enabled or not self.is_running:
            return

        identity = event.identity
        if identity in self._dedup:
            logger.debug("[Agent] %s skipping duplicate event %s", self.name, event.type)
            return
        self._dedup.record(identity)

        logger.info("[Agent] %s processing event: %s", self.name, event.type)
        started = time.perf_counter()
        try:
            if self.config.serialize_events:
                async with self._get_lock():
                    # Stopped while waiting for an earlier event.
                    if not self.is_running:
                        logger.debug("[Agent] %s dropping queued event %s", self.name, event.type)
                        return
                    await self.process_event(event)
            else:
                await self.process_event(event)
        except Exception as e:
            self.metrics.record(_elapsed_ms(started), success=False)
            logger.error(
                "[Agent] %s error processing event %s: %s", self.name, event.type, e,
                exc_info=e,
            )
            self._emit(AgentSignal.ERROR, {"agent": self.name, "event": event, "error": e})
            self.dispatcher.publish(
                EventType.SYSTEM_ERROR,
                {"agent": self.name, "event": event.type, "error": str(e) or type(e).__name__},
                source=self.name,
            )
            return

        self.metrics.record(_elapsed_ms(started), success=True)
        self._emit(AgentSignal.EVENT_PROCESSED, {"agent": self.name, "event": event})

    @abstractmethod
    async def process_event(self, event: Event) -> None:
        """Worker-specific event processing."""

    def publish_event(self, event_type: EventType | str, payload: dict[str, Any]) -> Optional[Event]:
        """Publish through the dispatcher if the type is in the allow-list."""
        name = event_type_name(event_type)
        if name not in self.config.publish_events:
            logger.warning("[Agent] %s attempted to publish unauthorized event: %s", self.name, name)
            return None

        return self.dispatcher.publish(name, payload, source=self.name)

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    # ============ Local signals ============

    def on(self, signal: AgentSignal | str, listener: SignalListener) -> None:
        """Register a listener for a local signal."""
        self._listeners[_signal_name(signal)].append(listener)

    def off(self, signal: AgentSignal | str, listener: SignalListener) -> None:
        listeners = self._listeners.get(_signal_name(signal), [])
        if listener in listeners:
            listeners.remove(listener)

    def _emit(self, signal: AgentSignal, data: dict[str, Any]) -> None:
        for listener in list(self._listeners.get(signal.value, [])):
            try:
                listener(data)
            except Exception:
                logger.exception("[Agent] %s listener for %s failed", self.name, signal.value)

    # ============ Task invocation ============

    def register_operation(self, operation: str, handler: TaskOperation) -> None:
        """Expose a handler through ``process_task``."""
        self._operations[operation] = handler

    def list_operations(self) -> list[str]:
        return sorted(self._operations)

    async def process_task(self, operation: str, payload: Optional[dict[str, Any]] = None) -> Any:
        """Run a registered operation; raises on failure."""
        if not self.config.enabled:
            raise AgentDisabledError(f"agent {self.agent_id} is disabled")
        if not self.is_running:
            raise AgentDisabledError(f"agent {self.agent_id} is not running")

        handler = self._operations.get(operation)
        if handler is None:
            raise ProcessingError(f"unknown operation for agent {self.agent_id}: {operation}")

        started = time.perf_counter()
        try:
            result = handler(payload or {})
            if inspect.isawaitable(result):
                result = await asyncio.wait_for(result, timeout=self.task_timeout_seconds)
        except asyncio.TimeoutError as e:
            self.metrics.record(_elapsed_ms(started), success=False)
            raise ProcessingError(
                f"operation {operation} timed out after {self.task_timeout_seconds}s"
            ) from e
        except Exception:
            self.metrics.record(_elapsed_ms(started), success=False)
            raise

        self.metrics.record(_elapsed_ms(started), success=True)
        return result

    # ============ Status ============

    def get_status(self) -> AgentStatus:
        return AgentStatus(
            agent_id=self.agent_id,
            name=self.name,
            description=self.config.description,
            state=self._state,
            enabled=self.config.enabled,
            subscribe_to_events=list(self.config.subscribe_to_events),
            publish_events=list(self.config.publish_events),
            operations=self.list_operations(),
            processed_events_count=len(self._dedup),
            metrics=self.metrics.summary(),
        )

    # ============ Utilities ============

    async def delay(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def validate_event_payload(self, event: Event, required_fields: list[str]) -> bool:
        """Check that every required field is present in the event payload."""
        if not event.payload:
            return False
        return all(field in event.payload for field in required_fields)

    def require_fields(self, payload: dict[str, Any], required_fields: list[str]) -> None:
        """Raise PayloadValidationError listing the missing fields."""
        missing = [field for field in required_fields if field not in (payload or {})]
        if missing:
            raise PayloadValidationError(
                f"missing required fields: {', '.join(missing)}", missing_fields=missing,
            )

    def log_info(self, message: str, *args: Any) -> None:
        """Log ``message % args`` with the agent prefix."""
        logger.info("[Agent] %s: " + message, self.name, *args)

    def log_error(self, message: str, *args: Any, error: Optional[BaseException] = None) -> None:
        logger.error("[Agent] %s: " + message, self.name, *args, exc_info=error)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _signal_name(signal: AgentSignal | str) -> str:
    return signal.value if isinstance(signal, AgentSignal) else str(signal)
