"""Team assembly agent: searches the candidate pool for balanced teams."""

import asyncio
import time
from typing import Any, Callable, Iterable, Optional

import numpy as np
from pydantic import ValidationError

from hackmatch.agent import Agent, AgentConfig
from hackmatch.compatibility import CompatibilityScorer
from hackmatch.config import RuntimeConfig, TeamAssemblyConfig
from hackmatch.errors import ProcessingError
from hackmatch.events import Event, EventDispatcher, EventType
from hackmatch.models import CandidateProfile, TeamFormationResult, TeamRequirement
from hackmatch.profile_pool import ProfilePool
from hackmatch.team_optimizer import TeamOptimizer, TeamScorer, low_score_reason

MAX_SUGGESTED_CANDIDATES = 10


class TeamAssemblyAgent(Agent):
    """Forms teams on ``team.formation_requested``.

    Requests are handled one at a time by default because each one runs a
    potentially long search. Running searches can be cancelled with
    ``cancel_all``; stopping the agent cancels them too.
    A best team scoring below ``min_acceptable_score`` is not formed; it is
    reported on ``team.formation_failed`` along with suggested candidates.
    """

    def __init__(
        self,
        dispatcher: Optional[EventDispatcher] = None,
        config: Optional[TeamAssemblyConfig] = None,
        runtime_config: Optional[RuntimeConfig] = None,
        agent_id: Optional[str] = None,
        compatibility: Optional[CompatibilityScorer] = None,
        pool: Optional[ProfilePool] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], float] = time.time,
    ):
        config = config or TeamAssemblyConfig()
        super().__init__(
            AgentConfig(
                name="TeamAssemblyAgent",
                description="Assembles balanced teams using combinatorial search",
                subscribe_to_events=[EventType.TEAM_FORMATION_REQUESTED],
                publish_events=[EventType.TEAM_FORMED, EventType.TEAM_FORMATION_FAILED],
                serialize_events=config.serialize_requests,
            ),
            dispatcher=dispatcher,
            agent_id=agent_id,
            runtime_config=runtime_config,
            clock=clock,
        )
        self.team_config = config
        self.team_scorer = TeamScorer(compatibility, config.weights, config.preferred_skill_weight)
        self.optimizer = TeamOptimizer(self.team_scorer, config, rng=rng)
        self.pool = pool
        self._active: set[asyncio.Event] = set()

        self.register_operation("form_team", self._form_team_task)
        self.register_operation("calculate_team_score", self._calculate_team_score_task)
        self.register_operation("calculate_diversity", self._calculate_diversity_task)

    async def process_event(self, event: Event) -> None:
        if event.type == EventType.TEAM_FORMATION_REQUESTED:
            await self._handle_formation_request(event)

    async def _handle_formation_request(self, event: Event) -> None:
        if not self.validate_event_payload(event, ["requirement"]):
            self.log_error("Invalid team formation request payload")
            return

        try:
            requirement = TeamRequirement.model_validate(event.payload["requirement"])
            candidates = self._candidates(event.payload.get("candidates"))
        except ValidationError as e:
            self.log_error("Invalid team formation request: %s", e)
            return

        self.log_info("Forming team of %d from %d candidates", requirement.team_size, len(candidates))

        result = await self.form_team(requirement, candidates)

        if not result.success:
            self.publish_event(EventType.TEAM_FORMATION_FAILED, {
                "contextId": requirement.context_id,
                "reason": result.error,
                "shortfall": result.shortfall,
            })
            self.log_info("Team formation failed: %s", result.error)
        elif result.low_score:
            # Too weak to form automatically; hand the best attempt back for manual formation.
            self.publish_event(EventType.TEAM_FORMATION_FAILED, {
                "contextId": requirement.context_id,
                "reason": low_score_reason(result.team.overall_score, self.team_config.min_acceptable_score),
                "shortfall": None,
                "team": result.team.model_dump(mode="json"),
                "suggestedCandidates": [c.id for c in candidates[:MAX_SUGGESTED_CANDIDATES]],
            })
            self.log_info("Optimal team score too low (%.3f), suggesting manual formation",
                          result.team.overall_score)
        else:
            self.publish_event(EventType.TEAM_FORMED, {
                "contextId": requirement.context_id,
                "team": result.team.model_dump(mode="json"),
            })
            self.log_info("Team formed with overall score %.3f", result.team.overall_score)

    async def form_team(
        self,
        requirement: TeamRequirement,
        candidates: Iterable[CandidateProfile],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TeamFormationResult:
        """Search for the best team; failures come back as values."""
        cancel_event = cancel_event or asyncio.Event()
        self._active.add(cancel_event)
        try:
            return await self.optimizer.form_team_async(requirement, candidates, cancel_event)
        finally:
            self._active.discard(cancel_event)

    def cancel_all(self) -> int:
        """Cancel every running search. Returns how many were signalled."""
        active = list(self._active)
        for cancel_event in active:
            cancel_event.set()
        return len(active)

    def calculate_team_score(
        self,
        members: list[CandidateProfile],
        required_skills: list[str],
        preferred_skills: Iterable[str] = (),
    ) -> float:
        return self.team_scorer.calculate_team_score(members, required_skills, preferred_skills)

    def calculate_diversity(self, members: list[CandidateProfile]) -> float:
        return self.team_scorer.calculate_diversity(members)

    def _candidates(self, data: Optional[list[Any]]) -> list[CandidateProfile]:
        if data is None:
            if self.pool is None:
                raise ProcessingError("no candidates given and no profile pool attached")
            return self.pool.list_all()
        return [
            candidate if isinstance(candidate, CandidateProfile) else CandidateProfile.model_validate(candidate)
            for candidate in data
        ]

    # ============ Task operations ============

    async def _form_team_task(self, payload: dict[str, Any]) -> TeamFormationResult:
        self.require_fields(payload, ["requirement"])
        requirement = payload["requirement"]
        if not isinstance(requirement, TeamRequirement):
            requirement = TeamRequirement.model_validate(requirement)
        return await self.form_team(requirement, self._candidates(payload.get("candidates")))

    def _calculate_team_score_task(self, payload: dict[str, Any]) -> float:
        self.require_fields(payload, ["members"])
        return self.calculate_team_score(
            self._candidates(payload["members"]),
            payload.get("requiredSkills") or payload.get("required_skills") or [],
            payload.get("preferredSkills") or payload.get("preferred_skills") or [],
        )

    def _calculate_diversity_task(self, payload: dict[str, Any]) -> float:
        self.require_fields(payload, ["members"])
        return self.calculate_diversity(self._candidates(payload["members"]))

    def on_start(self) -> None:
        self.log_info("Ready to assemble teams")

    def on_stop(self) -> None:
        cancelled = self.cancel_all()
        if cancelled:
            self.log_info("Cancelled %d running team searches", cancelled)
