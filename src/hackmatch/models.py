"""Data records exchanged between the matchmaking workers."""

from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from hackmatch.skills import normalize_skills


class CandidateProfile(BaseModel):
    """A participant as seen by the matching and team workers.

    Skills are canonicalized and de-duplicated on construction. Profiles are
    replaced, never mutated, when a newer version arrives.
    """
    id: str = Field(validation_alias=AliasChoices("id", "userId", "user_id"))
    skills: list[str] = Field(default_factory=list)
    experience_years: float = Field(
        default=0.0,
        ge=0,
        validation_alias=AliasChoices("experience_years", "experienceYears", "experience"),
    )
    preferences: dict[str, Any] = Field(default_factory=dict)

    @field_validator("skills", mode="before")
    @classmethod
    def _canonical_skills(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return normalize_skills(value)

    def skill_keys(self) -> set[str]:
        """Lowercased skills for case-insensitive set arithmetic."""
        return {skill.lower() for skill in self.skills}


class CompatibilityBreakdown(BaseModel):
    """Sub-scores of a compatibility result, each in [0, 1]."""
    skill_overlap: float = 0.0
    complementary_skills: float = 0.0
    experience_balance: float = 0.0
    preference_alignment: float = 0.0


class CompatibilityResult(BaseModel):
    """Pairwise compatibility of two candidates."""
    score: float = Field(ge=0, le=100)
    breakdown: CompatibilityBreakdown = Field(default_factory=CompatibilityBreakdown)
    shared_skills: list[str] = Field(default_factory=list)
    complementary_skills: list[str] = Field(default_factory=list)


class MatchFilters(BaseModel):
    """Filters applied by find_matches; experience bounds are inclusive."""
    min_experience: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("min_experience", "minExperience"),
    )
    max_experience: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("max_experience", "maxExperience"),
    )
    limit: int = Field(default=10, ge=0)

    def accepts(self, candidate: CandidateProfile) -> bool:
        if self.min_experience is not None and candidate.experience_years < self.min_experience:
            return False
        if self.max_experience is not None and candidate.experience_years > self.max_experience:
            return False
        return True


class MatchResult(BaseModel):
    """A ranked candidate for a target profile."""
    candidate: CandidateProfile
    compatibility: CompatibilityResult


class TeamRequirement(BaseModel):
    """What a team formation request asks for.

    Preferred skills count towards coverage at a lower weight than required
    ones. When ``requester_id`` is set that candidate is part of every team.
    """
    team_size: int = Field(gt=0, validation_alias=AliasChoices("team_size", "teamSize"))
    required_skills: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("required_skills", "requiredSkills"),
    )
    preferred_skills: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("preferred_skills", "preferredSkills"),
    )
    context_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("context_id", "contextId", "hackathonId"),
    )
    requester_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("requester_id", "requesterId"),
    )

    @field_validator("required_skills", "preferred_skills", mode="before")
    @classmethod
    def _canonical_skills(cls, value: Any) -> list[str]:
        return normalize_skills(value or [])


class SearchStrategy(str, Enum):
    """How a team was searched for."""
    EXHAUSTIVE = "exhaustive"
    EVOLUTIONARY = "evolutionary"


class SearchStats(BaseModel):
    """Bookkeeping about a finished team search."""
    strategy: SearchStrategy
    generations: int = 0
    evaluations: int = 0
    stopped_reason: str = "completed"


class TeamComposition(BaseModel):
    """A scored team."""
    members: list[CandidateProfile]
    skill_coverage: float = Field(ge=0, le=1)
    diversity_score: float = Field(ge=0, le=1)
    compatibility_score: float = Field(ge=0, le=100)
    overall_score: float = Field(ge=0, le=1)
    search: Optional[SearchStats] = None

    @property
    def member_ids(self) -> list[str]:
        return [member.id for member in self.members]


class TeamFormationResult(BaseModel):
    """Outcome of form_team; failures are values, never raised."""
    success: bool
    team: Optional[TeamComposition] = None
    error: Optional[str] = None
    shortfall: Optional[int] = None
    low_score: bool = False


class ExperienceEntry(BaseModel):
    """A position extracted from a resume."""
    title: str
    company: str
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    years: float = 0.0
    description: Optional[str] = None


class EducationEntry(BaseModel):
    """A degree extracted from a resume."""
    degree: str
    institution: str
    year: Optional[int] = None


class ParsedProfile(BaseModel):
    """Structured view of a resume."""
    user_id: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    experience: list[ExperienceEntry] = Field(default_factory=list)
    education: list[EducationEntry] = Field(default_factory=list)
    experience_years: float = 0.0
    summary: str = ""
    confidence: float = Field(default=0.0, ge=0, le=1)

    def to_candidate(self, candidate_id: Optional[str] = None, **preferences: Any) -> CandidateProfile:
        """Project the parsed profile onto the matching model."""
        return CandidateProfile(
            id=candidate_id or self.user_id or "anonymous",
            skills=self.skills,
            experience_years=self.experience_years,
            preferences=preferences,
        )


class ParseResult(BaseModel):
    """Outcome of parsing a resume."""
    success: bool
    profile: Optional[ParsedProfile] = None
    confidence: float = 0.0
    error: Optional[str] = None
