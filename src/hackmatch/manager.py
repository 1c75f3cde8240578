"""Agent manager: registry, lifecycle supervision and task routing."""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from hackmatch.agent import Agent, AgentSignal, AgentStatus
from hackmatch.config import ManagerConfig
from hackmatch.errors import AgentNotFoundError
from hackmatch.events import Event, EventDispatcher, EventType

logger = logging.getLogger(__name__)

MIN_HEALTHY_SUCCESS_RATE = 50.0


class TaskResult(BaseModel):
    """Outcome of a task routed through the manager."""
    agent_id: str
    operation: str
    success: bool
    result: Any = None
    error: Optional[str] = None
    duration_ms: float = 0.0


class AgentCount(BaseModel):
    total: int = 0
    running: int = 0
    stopped: int = 0


class SystemHealth(BaseModel):
    """Aggregate health of all registered agents."""
    healthy: bool
    agent_count: AgentCount
    issues: list[str] = Field(default_factory=list)


class AgentHealth(BaseModel):
    """Health of a single agent."""
    agent_id: str
    healthy: bool
    running: bool
    success_rate: float
    issues: list[str] = Field(default_factory=list)


class SystemStats(BaseModel):
    """Counters across all registered agents."""
    total_agents: int = 0
    running_agents: int = 0
    healthy_agents: int = 0
    total_tasks_processed: int = 0
    total_failures: int = 0
    average_response_time_ms: float = 0.0


class AgentManager:
    """Owns the agent registry and supervises agent lifecycles.

    Lifecycle operations on unknown ids are logged and answered with False;
    task failures come back as unsuccessful TaskResult values.
    """

    def __init__(
        self,
        dispatcher: Optional[EventDispatcher] = None,
        config: Optional[ManagerConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.dispatcher = dispatcher or EventDispatcher()
        self.config = config or ManagerConfig()
        self._clock = clock

        self._agents: dict[str, Agent] = {}
        self._start_times: dict[str, float] = {}
        self._last_activity: dict[str, float] = {}
        self._signal_listeners: dict[str, list[tuple[AgentSignal, Callable]]] = {}

        self.last_health_reports: list[AgentHealth] = []

        self.dispatcher.subscribe(EventType.SYSTEM_ERROR, self._on_system_error)
        self.dispatcher.subscribe(EventType.SYSTEM_HEALTH_CHECK, self._on_health_check)

    # ============ Registry ============

    def register_agent(self, agent: Agent) -> None:
        """Register an agent; an agent with the same id is replaced."""
        agent_id = agent.agent_id
        if agent_id in self._agents:
            logger.warning("[AgentManager] Replacing registered agent: %s", agent_id)
            self.unregister_agent(agent_id)

        def on_processed(data: dict[str, Any]) -> None:
            self._last_activity[agent_id] = self._clock()

        def on_error(data: dict[str, Any]) -> None:
            logger.error("[AgentManager] Agent %s error: %s", agent_id, data.get("error"))

        listeners = [(AgentSignal.EVENT_PROCESSED, on_processed), (AgentSignal.ERROR, on_error)]
        for signal, listener in listeners:
            agent.on(signal, listener)

        self._agents[agent_id] = agent
        self._signal_listeners[agent_id] = listeners
        logger.info("[AgentManager] Registered agent: %s", agent_id)

    def unregister_agent(self, agent_id: str) -> bool:
        """Stop an agent and remove it together with its subscriptions."""
        agent = self._agents.pop(agent_id, None)
        if agent is None:
            return False

        if agent.is_running:
            agent.stop()
        agent.detach()
        for signal, listener in self._signal_listeners.pop(agent_id, []):
            agent.off(signal, listener)

        self._start_times.pop(agent_id, None)
        self._last_activity.pop(agent_id, None)
        logger.info("[AgentManager] Unregistered agent: %s", agent_id)
        return True

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def list_agents(self) -> list[Agent]:
        return list(self._agents.values())

    def _require(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(f"agent not found: {agent_id}")
        return agent

    # ============ Lifecycle ============

    def start_agent(self, agent_id: str) -> bool:
        agent = self._agents.get(agent_id)
        if agent is None:
            logger.error("[AgentManager] Agent not found: %s", agent_id)
            return False

        try:
            agent.start()
        except Exception:
            logger.exception("[AgentManager] Failed to start agent %s", agent_id)
            return False

        self._start_times.setdefault(agent_id, self._clock())
        self.dispatcher.publish(EventType.AGENT_STARTED, {"agentId": agent_id}, source="AgentManager")
        logger.info("[AgentManager] Started agent: %s", agent_id)
        return True

    def stop_agent(self, agent_id: str) -> bool:
        agent = self._agents.get(agent_id)
        if agent is None:
            logger.error("[AgentManager] Agent not found: %s", agent_id)
            return False

        try:
            agent.stop()
        except Exception:
            logger.exception("[AgentManager] Failed to stop agent %s", agent_id)
            return False

        self._start_times.pop(agent_id, None)
        self._last_activity.pop(agent_id, None)
        self.dispatcher.publish(EventType.AGENT_STOPPED, {"agentId": agent_id}, source="AgentManager")
        logger.info("[AgentManager] Stopped agent: %s", agent_id)
        return True

    def restart_agent(self, agent_id: str) -> bool:
        """Stop then immediately start an agent."""
        logger.info("[AgentManager] Restarting agent: %s", agent_id)
        if not self.stop_agent(agent_id):
            return False
        return self.start_agent(agent_id)

    def start_all_agents(self) -> int:
        """Start every registered agent. Returns how many started."""
        logger.info("[AgentManager] Starting all agents...")
        return sum(1 for agent_id in list(self._agents) if self.start_agent(agent_id))

    def stop_all_agents(self) -> int:
        logger.info("[AgentManager] Stopping all agents...")
        return sum(1 for agent_id in list(self._agents) if self.stop_agent(agent_id))

    def shutdown(self) -> None:
        """Stop and unregister every agent."""
        for agent_id in list(self._agents):
            self.unregister_agent(agent_id)
        self.dispatcher.unsubscribe(EventType.SYSTEM_ERROR, self._on_system_error)
        self.dispatcher.unsubscribe(EventType.SYSTEM_HEALTH_CHECK, self._on_health_check)

    # ============ Status & health ============

    def get_agent_status(self, agent_id: str) -> Optional[AgentStatus]:
        agent = self._agents.get(agent_id)
        if agent is None:
            return None

        status = agent.get_status()
        started = self._start_times.get(agent_id)
        last = self._last_activity.get(agent_id)
        return status.model_copy(update={
            "uptime_seconds": self._clock() - started if started is not None else 0.0,
            "last_activity": datetime.fromtimestamp(last, timezone.utc) if last is not None else None,
        })

    def get_all_agent_statuses(self) -> list[AgentStatus]:
        """Statuses of all agents, sorted by agent id."""
        return [self.get_agent_status(agent_id) for agent_id in sorted(self._agents)]

    def get_agent_count(self) -> AgentCount:
        running = sum(1 for agent in self._agents.values() if agent.is_running)
        return AgentCount(total=len(self._agents), running=running, stopped=len(self._agents) - running)

    def get_system_health(self) -> SystemHealth:
        """Report stopped agents and running agents idle past the threshold."""
        count = self.get_agent_count()
        issues = []

        if count.stopped > 0:
            issues.append(f"{count.stopped} agent(s) are stopped")

        cutoff = self._clock() - self.config.inactivity_threshold_seconds
        for agent_id in sorted(self._agents):
            agent = self._agents[agent_id]
            started = self._start_times.get(agent_id)
            last = self._last_activity.get(agent_id)
            if not agent.is_running or started is None or started >= cutoff:
                continue
            if last is None or last < cutoff:
                issues.append(f"Agent {agent_id} has no recent activity")

        return SystemHealth(healthy=not issues, agent_count=count, issues=issues)

    def check_agent_health(self, agent_id: str) -> Optional[AgentHealth]:
        agent = self._agents.get(agent_id)
        if agent is None:
            return None

        issues = []
        if not agent.config.enabled:
            issues.append("agent is disabled")
        metrics = agent.metrics
        if metrics.total_processed and metrics.success_rate < MIN_HEALTHY_SUCCESS_RATE:
            issues.append(f"success rate {metrics.success_rate}% is below {MIN_HEALTHY_SUCCESS_RATE}%")

        return AgentHealth(
            agent_id=agent_id,
            healthy=not issues,
            running=agent.is_running,
            success_rate=metrics.success_rate,
            issues=issues,
        )

    def get_system_stats(self) -> SystemStats:
        agents = list(self._agents.values())
        processed = sum(agent.metrics.total_processed for agent in agents)
        total_time = sum(agent.metrics.total_processing_time_ms for agent in agents)

        return SystemStats(
            total_agents=len(agents),
            running_agents=sum(1 for agent in agents if agent.is_running),
            healthy_agents=sum(1 for agent in agents if self.check_agent_health(agent.agent_id).healthy),
            total_tasks_processed=processed,
            total_failures=sum(agent.metrics.total_failed for agent in agents),
            average_response_time_ms=total_time / processed if processed else 0.0,
        )

    # ============ Tasks & events ============

    async def process_task(
        self,
        agent_id: str,
        operation: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> TaskResult:
        """Run an agent operation and report the outcome as a TaskResult."""
        details = {"agentId": agent_id, "operation": operation}
        self.dispatcher.publish(EventType.AGENT_TASK_STARTED, details, source="AgentManager")

        started = time.perf_counter()
        try:
            agent = self._require(agent_id)
            result = await agent.process_task(operation, payload)
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            error = str(e) or type(e).__name__
            logger.warning("[AgentManager] Task %s on %s failed: %s", operation, agent_id, error)
            self.dispatcher.publish(
                EventType.AGENT_TASK_FAILED,
                {**details, "error": error, "durationMs": duration_ms},
                source="AgentManager",
            )
            return TaskResult(
                agent_id=agent_id, operation=operation, success=False,
                error=error, duration_ms=duration_ms,
            )

        duration_ms = (time.perf_counter() - started) * 1000
        self._last_activity[agent_id] = self._clock()
        self.dispatcher.publish(
            EventType.AGENT_TASK_COMPLETED,
            {**details, "durationMs": duration_ms},
            source="AgentManager",
        )
        return TaskResult(
            agent_id=agent_id, operation=operation, success=True,
            result=result, duration_ms=duration_ms,
        )

    def trigger_test_event(self, agent_id: Optional[str] = None) -> Event:
        """Publish a health-check event for one agent or all of them."""
        logger.info(
            "[AgentManager] Triggering test event for %s",
            f"agent {agent_id}" if agent_id else "all agents",
        )
        return self.dispatcher.publish(
            EventType.SYSTEM_HEALTH_CHECK,
            {"message": "Test event from AgentManager", "targetAgent": agent_id},
            source="AgentManager",
        )

    def _on_system_error(self, event: Event) -> None:
        logger.error("[AgentManager] System error detected: %s", event.payload)

    def _on_health_check(self, event: Event) -> None:
        """Answer a health check by logging the health of the targeted agents."""
        target = event.payload.get("targetAgent")
        agent_ids = [target] if target else sorted(self._agents)

        reports = []
        for agent_id in agent_ids:
            health = self.check_agent_health(agent_id)
            if health is None:
                logger.warning("[AgentManager] Health check for unknown agent: %s", agent_id)
                continue
            logger.info(
                "[AgentManager] Health check %s: healthy=%s running=%s success_rate=%s",
                agent_id, health.healthy, health.running, health.success_rate,
            )
            reports.append(health)
        self.last_health_reports = reports
