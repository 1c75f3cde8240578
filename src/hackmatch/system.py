"""Main matchmaking system that wires the dispatcher, manager and workers."""

from typing import Any, Optional

import numpy as np

from hackmatch.agents import CompatibilityAgent, ProfileExtractionAgent, TeamAssemblyAgent
from hackmatch.config import Config
from hackmatch.events import Event, EventDispatcher, EventType
from hackmatch.manager import AgentManager, TaskResult
from hackmatch.models import CandidateProfile, MatchFilters, TeamRequirement
from hackmatch.profile_pool import ProfilePool


class MatchmakingSystem:
    """
    Main class for the hackathon matchmaking pipeline.

    Integrates:
    - Event dispatcher shared by every component
    - Agent manager supervising the workers
    - Profile extraction, compatibility and team assembly agents
    - A profile pool shared by the compatibility and team assembly agents
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        dispatcher: Optional[EventDispatcher] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config or Config.from_default_locations()
        self.dispatcher = dispatcher or EventDispatcher()
        self.pool = ProfilePool()
        self._rng = rng

        self.manager: Optional[AgentManager] = None
        self.profile_agent: Optional[ProfileExtractionAgent] = None
        self.compatibility_agent: Optional[CompatibilityAgent] = None
        self.team_agent: Optional[TeamAssemblyAgent] = None

        self._initialized = False

    def initialize(self) -> None:
        """Create and register all agents."""
        if self._initialized:
            return

        self.manager = AgentManager(self.dispatcher, self.config.manager)

        self.profile_agent = ProfileExtractionAgent(
            self.dispatcher,
            config=self.config.profile_extraction,
            runtime_config=self.config.runtime,
        )
        self.compatibility_agent = CompatibilityAgent(
            self.dispatcher,
            config=self.config.compatibility,
            runtime_config=self.config.runtime,
            pool=self.pool,
        )
        self.team_agent = TeamAssemblyAgent(
            self.dispatcher,
            config=self.config.team_assembly,
            runtime_config=self.config.runtime,
            compatibility=self.compatibility_agent.scorer,
            pool=self.pool,
            rng=self._rng,
        )

        for agent in (self.profile_agent, self.compatibility_agent, self.team_agent):
            self.manager.register_agent(agent)

        if self.config.manager.auto_start:
            self.manager.start_all_agents()

        self._initialized = True

    def is_initialized(self) -> bool:
        return self._initialized

    def ensure_initialized(self) -> None:
        if not self._initialized:
            self.initialize()

    def start(self) -> int:
        """Start every agent."""
        self.ensure_initialized()
        return self.manager.start_all_agents()

    def stop(self) -> int:
        self.ensure_initialized()
        return self.manager.stop_all_agents()

    # ============ Event entry points ============

    def submit_resume(self, user_id: str, content: str, mime_type: str = "text/plain") -> Event:
        """Publish ``resume.uploaded``; the parsed profile lands in the pool."""
        self.ensure_initialized()
        return self.dispatcher.publish(
            EventType.RESUME_UPLOADED,
            {"userId": user_id, "originalContent": content, "mimeType": mime_type},
            source="MatchmakingSystem",
        )

    def request_matches(self, user_id: str, filters: Optional[dict[str, Any]] = None) -> Event:
        self.ensure_initialized()
        return self.dispatcher.publish(
            EventType.MATCH_REQUESTED,
            {"userId": user_id, "filters": filters or {}},
            source="MatchmakingSystem",
        )

    def request_team(
        self,
        requirement: TeamRequirement,
        candidates: Optional[list[CandidateProfile]] = None,
    ) -> Event:
        self.ensure_initialized()
        payload: dict[str, Any] = {"requirement": requirement.model_dump()}
        if candidates is not None:
            payload["candidates"] = [candidate.model_dump() for candidate in candidates]
        return self.dispatcher.publish(
            EventType.TEAM_FORMATION_REQUESTED, payload, source="MatchmakingSystem",
        )

    async def drain(self) -> None:
        """Wait for in-flight event handling to settle."""
        await self.dispatcher.drain()

    # ============ Task entry points ============

    def add_candidate(self, profile: CandidateProfile) -> bool:
        """Add or replace a candidate in the shared pool."""
        self.ensure_initialized()
        return self.pool.register(profile)

    async def parse_resume(
        self,
        text: str,
        user_id: Optional[str] = None,
        mime_type: str = "text/plain",
    ) -> TaskResult:
        self.ensure_initialized()
        return await self.manager.process_task(
            self.profile_agent.agent_id,
            "parse_resume",
            {"text": text, "userId": user_id, "mimeType": mime_type},
        )

    async def find_matches(
        self,
        target: CandidateProfile | str,
        candidates: Optional[list[CandidateProfile]] = None,
        filters: Optional[MatchFilters] = None,
    ) -> TaskResult:
        self.ensure_initialized()
        return await self.manager.process_task(
            self.compatibility_agent.agent_id,
            "find_matches",
            {"target": target, "candidates": candidates, "filters": filters},
        )

    async def form_team(
        self,
        requirement: TeamRequirement,
        candidates: Optional[list[CandidateProfile]] = None,
    ) -> TaskResult:
        self.ensure_initialized()
        return await self.manager.process_task(
            self.team_agent.agent_id,
            "form_team",
            {"requirement": requirement, "candidates": candidates},
        )

    # ============ Status ============

    def get_stats(self) -> dict[str, Any]:
        """Get system statistics."""
        self.ensure_initialized()

        return {
            "candidates": self.pool.count(),
            "agents": [status.model_dump(mode="json") for status in self.manager.get_all_agent_statuses()],
            "health": self.manager.get_system_health().model_dump(),
            "stats": self.manager.get_system_stats().model_dump(),
            "event_types": sorted(self.dispatcher.list_types()),
        }

    def shutdown(self) -> None:
        """Shutdown the system and release all agents."""
        if self.manager:
            self.manager.shutdown()

        self._initialized = False
