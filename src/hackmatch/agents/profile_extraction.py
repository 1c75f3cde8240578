"""Profile extraction agent: resume uploads in, parsed profiles out."""

import time
from typing import Any, Callable, Optional

from hackmatch.agent import Agent, AgentConfig
from hackmatch.config import ProfileExtractionConfig, RuntimeConfig
from hackmatch.events import Event, EventDispatcher, EventType
from hackmatch.models import ParsedProfile, ParseResult
from hackmatch.profile_parser import ProfileParser
from hackmatch.skills import normalize_skills


class ProfileExtractionAgent(Agent):
    """Turns raw resume text into structured profiles.

    Subscribes to ``resume.uploaded`` and answers with ``resume.parsed`` or
    ``resume.parsing_failed``. The latest profile per user is kept in memory.
    """

    def __init__(
        self,
        dispatcher: Optional[EventDispatcher] = None,
        config: Optional[ProfileExtractionConfig] = None,
        runtime_config: Optional[RuntimeConfig] = None,
        agent_id: Optional[str] = None,
        parser: Optional[ProfileParser] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(
            AgentConfig(
                name="ProfileExtractionAgent",
                description="Extracts structured profiles from raw resume text",
                subscribe_to_events=[EventType.RESUME_UPLOADED],
                publish_events=[EventType.RESUME_PARSED, EventType.RESUME_PARSING_FAILED],
            ),
            dispatcher=dispatcher,
            agent_id=agent_id,
            runtime_config=runtime_config,
            clock=clock,
        )
        self.parser = parser or ProfileParser(config)
        self._profiles: dict[str, ParsedProfile] = {}

        self.register_operation("parse_resume", self._parse_resume_task)
        self.register_operation("get_profile", self._get_profile_task)
        self.register_operation("canonicalize_skills", self._canonicalize_skills_task)

    async def process_event(self, event: Event) -> None:
        if event.type == EventType.RESUME_UPLOADED:
            await self._handle_resume_uploaded(event)

    async def _handle_resume_uploaded(self, event: Event) -> None:
        if not self.validate_event_payload(event, ["userId"]):
            self.log_error("Invalid resume upload event payload")
            return

        user_id = event.payload["userId"]
        self.log_info("Starting resume parsing for user: %s", user_id)

        result = self.parse_resume(
            event.payload.get("originalContent") or "",
            mime_type=event.payload.get("mimeType", "text/plain"),
            user_id=user_id,
        )

        if not result.success:
            self.publish_event(EventType.RESUME_PARSING_FAILED, {
                "userId": user_id,
                "reason": result.error,
            })
            self.log_info("Resume parsing failed for user: %s", user_id)
            return

        self.publish_event(EventType.RESUME_PARSED, {
            "userId": user_id,
            "profile": result.profile.model_dump(mode="json"),
            "confidence": result.confidence,
        })
        self.log_info("Successfully parsed resume for user: %s", user_id)

    def parse_resume(
        self,
        content: object,
        mime_type: Optional[str] = "text/plain",
        user_id: Optional[str] = None,
    ) -> ParseResult:
        """Parse resume text and remember the profile of ``user_id``."""
        result = self.parser.parse(content, mime_type=mime_type, user_id=user_id)
        if result.success and user_id:
            self._profiles[user_id] = result.profile
        return result

    def get_profile(self, user_id: str) -> Optional[ParsedProfile]:
        return self._profiles.get(user_id)

    def normalize_skills(self, skills: list[str]) -> list[str]:
        return normalize_skills(skills)

    # ============ Task operations ============

    def _parse_resume_task(self, payload: dict[str, Any]) -> ParseResult:
        self.require_fields(payload, ["text"])
        return self.parse_resume(
            payload["text"],
            mime_type=payload.get("mimeType", "text/plain"),
            user_id=payload.get("userId"),
        )

    def _get_profile_task(self, payload: dict[str, Any]) -> Optional[ParsedProfile]:
        self.require_fields(payload, ["userId"])
        return self.get_profile(payload["userId"])

    def _canonicalize_skills_task(self, payload: dict[str, Any]) -> list[str]:
        self.require_fields(payload, ["skills"])
        return self.normalize_skills(payload["skills"])

    def on_start(self) -> None:
        self.log_info("Ready to process resume uploads")

    def on_stop(self) -> None:
        self.log_info("No longer processing resume uploads")
