"""Team scoring and team search.

Small pools are searched exhaustively. Larger pools use a population search
seeded with the first-N baseline and a greedy coverage team; the best team
found never scores below the baseline. Pairwise compatibility is computed on
demand, so the time budget and cancellation cover all of the scoring work.
"""

import asyncio
import logging
import math
import time
from itertools import combinations
from typing import Callable, Iterable, Iterator, Optional, Protocol

import numpy as np

from hackmatch.compatibility import CompatibilityScorer
from hackmatch.config import TeamAssemblyConfig, TeamScoreWeights
from hackmatch.errors import InsufficientCandidatesError, UnknownRequesterError
from hackmatch.models import (
    CandidateProfile,
    SearchStats,
    SearchStrategy,
    TeamComposition,
    TeamFormationResult,
    TeamRequirement,
)
from hackmatch.skills import SKILL_CATEGORIES, skill_categories, skill_key

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "team formation cancelled"


def low_score_reason(score: float, minimum: float) -> str:
    return f"team score {score:.3f} is below the minimum of {minimum:.3f}"


class CancelSignal(Protocol):
    """Anything with ``is_set()``: ``asyncio.Event`` or ``threading.Event``."""

    def is_set(self) -> bool: ...


class TeamScorer:
    """Scores a set of members against required skills."""

    def __init__(
        self,
        compatibility: Optional[CompatibilityScorer] = None,
        weights: Optional[TeamScoreWeights] = None,
        preferred_skill_weight: float = 0.5,
    ):
        self.compatibility = compatibility or CompatibilityScorer()
        self.weights = weights or TeamScoreWeights()
        self.preferred_skill_weight = preferred_skill_weight

    def skill_coverage(
        self,
        members: list[CandidateProfile],
        required_skills: Iterable[str],
        preferred_skills: Iterable[str] = (),
    ) -> float:
        """Weighted fraction of requested skills held by at least one member.

        Each required skill counts 1, each preferred skill counts
        ``preferred_skill_weight``. Nothing requested means full coverage.
        """
        required = {skill_key(skill) for skill in required_skills}
        preferred = {skill_key(skill) for skill in preferred_skills} - required
        total = len(required) + self.preferred_skill_weight * len(preferred)
        if not total:
            return 1.0
        held: set[str] = set()
        for member in members:
            held |= member.skill_keys()
        covered = len(required & held) + self.preferred_skill_weight * len(preferred & held)
        return covered / total

    def calculate_diversity(self, members: list[CandidateProfile]) -> float:
        """Half category spread, half skill uniqueness."""
        if len(members) < 2:
            return 0.0

        mentions = [skill.lower() for member in members for skill in member.skills]
        if not mentions:
            return 0.0

        categories = skill_categories(skill for member in members for skill in member.skills)
        category_spread = min(len(categories) / min(len(members), len(SKILL_CATEGORIES)), 1.0)
        skill_uniqueness = len(set(mentions)) / len(mentions)

        return 0.5 * category_spread + 0.5 * skill_uniqueness

    def team_compatibility(self, members: list[CandidateProfile]) -> float:
        """Mean pairwise compatibility score (100 for a single member)."""
        return mean_pairwise([
            self.compatibility.score(a, b).score for a, b in combinations(members, 2)
        ])

    def combine(self, coverage: float, diversity: float, compatibility: float) -> float:
        w = self.weights
        total = w.skill_coverage + w.diversity + w.compatibility
        if not total:
            return 0.0
        value = w.skill_coverage * coverage + w.diversity * diversity + w.compatibility * compatibility / 100
        return min(max(value / total, 0.0), 1.0)

    def calculate_team_score(
        self,
        members: list[CandidateProfile],
        required_skills: Iterable[str],
        preferred_skills: Iterable[str] = (),
    ) -> float:
        """Overall score of a team in [0, 1]."""
        return self.evaluate(members, required_skills, preferred_skills).overall_score

    def evaluate(
        self,
        members: list[CandidateProfile],
        required_skills: Iterable[str],
        preferred_skills: Iterable[str] = (),
    ) -> TeamComposition:
        coverage = self.skill_coverage(members, list(required_skills), list(preferred_skills))
        diversity = self.calculate_diversity(members)
        compatibility = self.team_compatibility(members)
        return TeamComposition(
            members=members,
            skill_coverage=coverage,
            diversity_score=diversity,
            compatibility_score=compatibility,
            overall_score=self.combine(coverage, diversity, compatibility),
        )


def mean_pairwise(scores: list[float]) -> float:
    if not scores:
        return 100.0
    return sum(scores) / len(scores)


def dedupe_candidates(candidates: Iterable[CandidateProfile]) -> list[CandidateProfile]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set[str] = set()
    pool = []
    for candidate in candidates:
        if candidate.id not in seen:
            seen.add(candidate.id)
            pool.append(candidate)
    return pool


class TeamOptimizer:
    """Searches a candidate pool for the best team of a given size."""

    def __init__(
        self,
        team_scorer: Optional[TeamScorer] = None,
        config: Optional[TeamAssemblyConfig] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or TeamAssemblyConfig()
        self.team_scorer = team_scorer or TeamScorer(
            weights=self.config.weights,
            preferred_skill_weight=self.config.preferred_skill_weight,
        )
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self._clock = clock

    def form_team(
        self,
        requirement: TeamRequirement,
        candidates: Iterable[CandidateProfile],
        cancel_event: Optional[CancelSignal] = None,
    ) -> TeamFormationResult:
        """Form a team synchronously."""
        try:
            search = self._start(requirement, candidates, cancel_event)
        except (InsufficientCandidatesError, UnknownRequesterError) as e:
            return _rejected(e)

        for _ in search.run():
            pass
        return search.result()

    async def form_team_async(
        self,
        requirement: TeamRequirement,
        candidates: Iterable[CandidateProfile],
        cancel_event: Optional[CancelSignal] = None,
    ) -> TeamFormationResult:
        """Form a team, yielding to the event loop between generations."""
        try:
            search = self._start(requirement, candidates, cancel_event)
        except (InsufficientCandidatesError, UnknownRequesterError) as e:
            return _rejected(e)

        for _ in search.run():
            await asyncio.sleep(0)
        return search.result()

    def _start(
        self,
        requirement: TeamRequirement,
        candidates: Iterable[CandidateProfile],
        cancel_event: Optional[CancelSignal],
    ) -> "_TeamSearch":
        pool = dedupe_candidates(candidates)
        if len(pool) < requirement.team_size:
            raise InsufficientCandidatesError(requirement.team_size, len(pool))

        # The requester moves to index 0 so it can be pinned.
        if requirement.requester_id is not None:
            requester = next((c for c in pool if c.id == requirement.requester_id), None)
            if requester is None:
                raise UnknownRequesterError(requirement.requester_id)
            pool = [requester] + [c for c in pool if c is not requester]

        deadline = None
        if self.config.time_budget_seconds is not None:
            deadline = self._clock() + self.config.time_budget_seconds

        return _TeamSearch(
            optimizer=self,
            pool=pool,
            requirement=requirement,
            cancel_event=cancel_event,
            deadline=deadline,
        )


def _rejected(error: Exception) -> TeamFormationResult:
    logger.info("Team formation rejected: %s", error)
    shortfall = error.shortfall if isinstance(error, InsufficientCandidatesError) else None
    return TeamFormationResult(success=False, error=str(error), shortfall=shortfall)


Team = tuple[int, ...]


class _TeamSearch:
    """State of one team search over a de-duplicated pool.

    Teams are sorted tuples of pool indices. A pinned requester sits at
    index 0 and is part of every team the search looks at.
    """

    def __init__(
        self,
        optimizer: TeamOptimizer,
        pool: list[CandidateProfile],
        requirement: TeamRequirement,
        cancel_event: Optional[CancelSignal],
        deadline: Optional[float],
    ):
        self.optimizer = optimizer
        self.config = optimizer.config
        self.scorer = optimizer.team_scorer
        self.rng = optimizer.rng
        self.pool = pool
        self.size = requirement.team_size
        self.required = list(requirement.required_skills)
        self.preferred = list(requirement.preferred_skills)
        self.cancel_event = cancel_event
        self.deadline = deadline

        self.pinned: Team = (0,) if requirement.requester_id is not None else ()
        self.free = range(len(self.pinned), len(pool))
        self.open_slots = self.size - len(self.pinned)

        self._pairs: dict[tuple[int, int], float] = {}
        self._cache: dict[Team, tuple[float, float, float, float]] = {}

        self.subsets = math.comb(len(self.free), self.open_slots)
        self.strategy = (
            SearchStrategy.EXHAUSTIVE
            if self.subsets <= self.config.exhaustive_limit
            else SearchStrategy.EVOLUTIONARY
        )
        self.generations = 0
        self.stopped_reason = "completed"
        self.cancelled = False

        self.best: Team = tuple(range(self.size))
        self.best_score = self.fitness(self.best)

    # ============ Scoring ============

    def fitness(self, team: Team) -> float:
        return self.components(team)[0]

    def components(self, team: Team) -> tuple[float, float, float, float]:
        team = tuple(sorted(team))
        cached = self._cache.get(team)
        if cached is not None:
            return cached

        members = [self.pool[i] for i in team]
        coverage = self.scorer.skill_coverage(members, self.required, self.preferred)
        diversity = self.scorer.calculate_diversity(members)
        compatibility = mean_pairwise([self.pair_score(i, j) for i, j in combinations(team, 2)])
        overall = self.scorer.combine(coverage, diversity, compatibility)

        self._cache[team] = (overall, coverage, diversity, compatibility)
        return self._cache[team]

    def pair_score(self, i: int, j: int) -> float:
        """Compatibility of two pool members, scored on first use."""
        key = (i, j) if i < j else (j, i)
        score = self._pairs.get(key)
        if score is None:
            score = self.scorer.compatibility.score(self.pool[key[0]], self.pool[key[1]]).score
            self._pairs[key] = score
        return score

    def offer(self, team: Team) -> bool:
        """Keep ``team`` if it is strictly better than the best so far."""
        team = tuple(sorted(team))
        score = self.fitness(team)
        if score > self.best_score:
            self.best, self.best_score = team, score
            return True
        return False

    # ============ Search ============

    def run(self) -> Iterator[int]:
        """Run the search; yields after each unit of work."""
        if self.strategy == SearchStrategy.EXHAUSTIVE:
            yield from self._exhaustive()
        else:
            yield from self._evolve()

        logger.debug(
            "Team search finished: strategy=%s generations=%d evaluations=%d pairs=%d reason=%s",
            self.strategy.value, self.generations, len(self._cache), len(self._pairs),
            self.stopped_reason,
        )

    def _should_stop(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.cancelled = True
            self.stopped_reason = "cancelled"
            return True
        if self.deadline is not None and self.optimizer._clock() >= self.deadline:
            self.stopped_reason = "deadline"
            return True
        return False

    def _exhaustive(self) -> Iterator[int]:
        for count, rest in enumerate(combinations(self.free, self.open_slots), start=1):
            if self._should_stop():
                return
            self.offer(self.pinned + rest)
            if count % 50 == 0:
                yield count
        yield self.subsets

    def _evolve(self) -> Iterator[int]:
        population_size = max(self.config.population_size, 2)
        population = [self.best, self.greedy_team()]
        while len(population) < population_size:
            population.append(self.random_team())

        for team in population:
            if self._should_stop():
                return
            self.offer(team)
        yield self.generations

        stagnant = 0
        while self.generations < self.config.max_generations:
            if self._should_stop():
                return

            self.generations += 1
            ranked = sorted(population, key=self.fitness, reverse=True)
            elites = ranked[:max(population_size // 2, 1)]

            offspring = list(elites)
            while len(offspring) < population_size:
                first, second = self.rng.integers(0, len(elites), size=2)
                offspring.append(self.mutate(self.crossover(elites[first], elites[second])))
            population = offspring

            improved = False
            for team in population:
                improved = self.offer(team) or improved

            stagnant = 0 if improved else stagnant + 1
            yield self.generations

            if stagnant >= self.config.stagnation_limit:
                self.stopped_reason = "stagnation"
                return

        self.stopped_reason = "max_generations"

    def greedy_team(self) -> Team:
        """Pick members by new required-skill coverage, then fill in pool order."""
        chosen = list(self.pinned)
        uncovered = {skill_key(skill) for skill in self.required}
        for i in self.pinned:
            uncovered -= self.pool[i].skill_keys()

        while len(chosen) < self.size and uncovered:
            best_index, best_gain = None, 0
            for i in self.free:
                if i in chosen:
                    continue
                gain = len(self.pool[i].skill_keys() & uncovered)
                if gain > best_gain:
                    best_index, best_gain = i, gain
            if best_index is None:
                break
            chosen.append(best_index)
            uncovered -= self.pool[best_index].skill_keys()

        for i in self.free:
            if len(chosen) >= self.size:
                break
            if i not in chosen:
                chosen.append(i)

        return tuple(sorted(chosen))

    def random_team(self) -> Team:
        picked = self.rng.choice(len(self.free), size=self.open_slots, replace=False)
        return tuple(sorted(self.pinned + tuple(self.free[int(i)] for i in picked)))

    def crossover(self, first: Team, second: Team) -> Team:
        genes = [i for i in dict.fromkeys(first + second) if i not in self.pinned]
        order = self.rng.permutation(len(genes))
        return tuple(sorted(self.pinned + tuple(genes[i] for i in order[:self.open_slots])))

    def mutate(self, team: Team) -> Team:
        members = list(team)
        for position in range(len(members)):
            if members[position] in self.pinned:
                continue
            if self.rng.random() >= self.config.mutation_rate:
                continue
            outside = [i for i in self.free if i not in members]
            if not outside:
                break
            members[position] = outside[int(self.rng.integers(0, len(outside)))]
        return tuple(sorted(members))

    # ============ Result ============

    def result(self) -> TeamFormationResult:
        if self.cancelled:
            logger.info("Team formation cancelled after %d generations", self.generations)
            return TeamFormationResult(success=False, error=CANCELLED_ERROR)

        overall, coverage, diversity, compatibility = self.components(self.best)
        team = TeamComposition(
            members=[self.pool[i] for i in self.best],
            skill_coverage=coverage,
            diversity_score=diversity,
            compatibility_score=compatibility,
            overall_score=overall,
            search=SearchStats(
                strategy=self.strategy,
                generations=self.generations,
                evaluations=len(self._cache),
                stopped_reason=self.stopped_reason,
            ),
        )

        minimum = self.config.min_acceptable_score
        low_score = minimum is not None and overall < minimum
        if low_score:
            logger.info("Best team rejected: %s", low_score_reason(overall, minimum))
        return TeamFormationResult(success=True, team=team, low_score=low_score)
