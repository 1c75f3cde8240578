"""Compatibility agent: pairwise scoring and ranked match suggestions."""

import time
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from hackmatch.agent import Agent, AgentConfig
from hackmatch.compatibility import CompatibilityScorer
from hackmatch.config import CompatibilityConfig, RuntimeConfig
from hackmatch.errors import ProcessingError
from hackmatch.events import Event, EventDispatcher, EventType
from hackmatch.models import CandidateProfile, CompatibilityResult, MatchFilters, MatchResult
from hackmatch.profile_pool import ProfilePool


class CompatibilityAgent(Agent):
    """Scores candidate pairs and answers match requests.

    Profiles published on ``resume.parsed`` are kept in a ProfilePool, which
    is the default candidate set for ``match.requested`` and ``find_matches``.
    """

    def __init__(
        self,
        dispatcher: Optional[EventDispatcher] = None,
        config: Optional[CompatibilityConfig] = None,
        runtime_config: Optional[RuntimeConfig] = None,
        agent_id: Optional[str] = None,
        pool: Optional[ProfilePool] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(
            AgentConfig(
                name="CompatibilityAgent",
                description="Scores pairwise compatibility and ranks potential teammates",
                subscribe_to_events=[EventType.RESUME_PARSED, EventType.MATCH_REQUESTED],
                publish_events=[EventType.MATCH_SUGGESTIONS_GENERATED],
            ),
            dispatcher=dispatcher,
            agent_id=agent_id,
            runtime_config=runtime_config,
            clock=clock,
        )
        self.config_section = config or CompatibilityConfig()
        self.scorer = CompatibilityScorer(self.config_section)
        self.pool = pool if pool is not None else ProfilePool()

        self.register_operation("calculate_compatibility", self._calculate_compatibility_task)
        self.register_operation("find_matches", self._find_matches_task)
        self.register_operation("register_profile", self._register_profile_task)

    async def process_event(self, event: Event) -> None:
        if event.type == EventType.RESUME_PARSED:
            self._handle_resume_parsed(event)
        elif event.type == EventType.MATCH_REQUESTED:
            self._handle_match_requested(event)

    def _handle_resume_parsed(self, event: Event) -> None:
        if not self.validate_event_payload(event, ["userId", "profile"]):
            self.log_error("Invalid resume parsed event payload")
            return

        user_id = event.payload["userId"]
        try:
            profile = CandidateProfile.model_validate({**event.payload["profile"], "id": user_id})
        except ValidationError as e:
            self.log_error("Invalid profile for user %s: %s", user_id, e)
            return

        existing = self.pool.get(user_id)
        if existing is not None and existing.preferences and not profile.preferences:
            profile = profile.model_copy(update={"preferences": existing.preferences})

        self.pool.register(profile)
        self.log_info("Updated profile for user: %s with %d skills", user_id, len(profile.skills))

    def _handle_match_requested(self, event: Event) -> None:
        if not self.validate_event_payload(event, ["userId"]):
            self.log_error("Invalid match request event payload")
            return

        user_id = event.payload["userId"]
        try:
            filters = self._filters(event.payload.get("filters"))
        except ValidationError as e:
            self.log_error("Invalid match filters for user %s: %s", user_id, e)
            return

        target = self.pool.get(user_id)
        if target is None:
            raise ProcessingError(f"no profile known for user: {user_id}")

        matches = self.find_matches(target, filters=filters)

        self.publish_event(EventType.MATCH_SUGGESTIONS_GENERATED, {
            "userId": user_id,
            "matches": [match.model_dump(mode="json") for match in matches],
        })
        self.log_info("Generated %d match suggestions for user: %s", len(matches), user_id)

    def calculate_compatibility(self, a: CandidateProfile, b: CandidateProfile) -> CompatibilityResult:
        return self.scorer.score(a, b)

    def find_matches(
        self,
        target: CandidateProfile,
        candidates: Optional[Iterable[CandidateProfile]] = None,
        filters: Optional[MatchFilters] = None,
    ) -> list[MatchResult]:
        """Rank ``candidates`` (the pool when omitted) for ``target``."""
        if candidates is None:
            candidates = self.pool.list_all()
        return self.scorer.find_matches(target, candidates, filters)

    def _filters(self, data: Any) -> MatchFilters:
        if isinstance(data, MatchFilters):
            return data
        data = dict(data or {})
        data.setdefault("limit", self.config_section.default_limit)
        return MatchFilters.model_validate(data)

    def _profile(self, data: Any) -> CandidateProfile:
        if isinstance(data, CandidateProfile):
            return data
        if isinstance(data, str):
            profile = self.pool.get(data)
            if profile is None:
                raise ProcessingError(f"no profile known for user: {data}")
            return profile
        return CandidateProfile.model_validate(data)

    # ============ Task operations ============

    def _calculate_compatibility_task(self, payload: dict[str, Any]) -> CompatibilityResult:
        self.require_fields(payload, ["a", "b"])
        return self.calculate_compatibility(self._profile(payload["a"]), self._profile(payload["b"]))

    def _find_matches_task(self, payload: dict[str, Any]) -> list[MatchResult]:
        self.require_fields(payload, ["target"])
        candidates = payload.get("candidates")
        if candidates is not None:
            candidates = [self._profile(candidate) for candidate in candidates]
        return self.find_matches(
            self._profile(payload["target"]),
            candidates,
            self._filters(payload.get("filters")),
        )

    def _register_profile_task(self, payload: dict[str, Any]) -> bool:
        self.require_fields(payload, ["profile"])
        return self.pool.register(self._profile(payload["profile"]))

    def on_start(self) -> None:
        self.log_info("Ready to generate match suggestions")

    def on_stop(self) -> None:
        self.log_info("No longer generating match suggestions")
