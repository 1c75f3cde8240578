"""Pairwise compatibility scoring between candidates."""

import logging
from typing import Iterable, Optional

import numpy as np

from hackmatch.config import CompatibilityConfig
from hackmatch.models import (
    CandidateProfile,
    CompatibilityBreakdown,
    CompatibilityResult,
    MatchFilters,
    MatchResult,
)

logger = logging.getLogger(__name__)


class CompatibilityScorer:
    """Scores how well two candidates would work together.

    The score is a weighted mean of four sub-scores in [0, 1], scaled to
    [0, 100]. It is a pure function of the two profiles and symmetric in them.
    """

    def __init__(self, config: Optional[CompatibilityConfig] = None):
        self.config = config or CompatibilityConfig()

    def score(self, a: CandidateProfile, b: CandidateProfile) -> CompatibilityResult:
        """Calculate compatibility between two profiles."""
        keys_a, keys_b = a.skill_keys(), b.skill_keys()
        union = keys_a | keys_b
        shared = keys_a & keys_b
        different = keys_a ^ keys_b

        breakdown = CompatibilityBreakdown(
            skill_overlap=len(shared) / len(union) if union else 0.0,
            complementary_skills=len(different) / len(union) if union else 0.0,
            experience_balance=self.experience_balance(a.experience_years, b.experience_years),
            preference_alignment=self.preference_alignment(a.preferences, b.preferences),
        )

        weights = self.config.weights
        pairs = [
            (weights.skill_overlap, breakdown.skill_overlap),
            (weights.complementary_skills, breakdown.complementary_skills),
            (weights.experience_balance, breakdown.experience_balance),
            (weights.preference_alignment, breakdown.preference_alignment),
        ]
        total_weight = sum(weight for weight, _ in pairs)
        raw = sum(weight * value for weight, value in pairs) / total_weight if total_weight else 0.0
        score = round(min(max(raw * 100, 0.0), 100.0), 2)

        ordered = a.skills + [skill for skill in b.skills if skill.lower() not in keys_a]
        return CompatibilityResult(
            score=score,
            breakdown=breakdown,
            shared_skills=[skill for skill in a.skills if skill.lower() in shared],
            complementary_skills=[skill for skill in ordered if skill.lower() in different],
        )

    def experience_balance(self, years_a: float, years_b: float) -> float:
        """1.0 within the tolerance, then a linear fall-off to 0."""
        gap = abs(years_a - years_b)
        tolerance = self.config.experience_tolerance
        if gap <= tolerance:
            return 1.0
        falloff = self.config.experience_falloff
        if falloff <= 0:
            return 0.0
        return max(0.0, 1.0 - (gap - tolerance) / falloff)

    def preference_alignment(self, prefs_a: dict, prefs_b: dict) -> float:
        """Fraction of shared preference keys with equal values."""
        shared_keys = set(prefs_a) & set(prefs_b)
        if not shared_keys:
            return self.config.neutral_preference_score
        agreeing = sum(1 for key in shared_keys if prefs_a[key] == prefs_b[key])
        return agreeing / len(shared_keys)

    def find_matches(
        self,
        target: CandidateProfile,
        candidates: Iterable[CandidateProfile],
        filters: Optional[MatchFilters] = None,
    ) -> list[MatchResult]:
        """Rank candidates for a target, best first.

        The target itself is skipped. Ties keep their input order.
        """
        filters = filters or MatchFilters(limit=self.config.default_limit)

        results = [
            MatchResult(candidate=candidate, compatibility=self.score(target, candidate))
            for candidate in candidates
            if candidate.id != target.id and filters.accepts(candidate)
        ]
        results.sort(key=lambda r: r.compatibility.score, reverse=True)

        logger.debug("Ranked %d candidates for %s", len(results), target.id)
        return results[:filters.limit]

    def score_matrix(self, profiles: list[CandidateProfile]) -> np.ndarray:
        """Symmetric matrix of pairwise scores; the diagonal is 100."""
        n = len(profiles)
        matrix = np.full((n, n), 100.0)
        for i in range(n):
            for j in range(i + 1, n):
                matrix[i, j] = matrix[j, i] = self.score(profiles[i], profiles[j]).score
        return matrix
