"""Tests for team scoring, team search and the team assembly agent."""

import asyncio
import itertools
import threading
import time
from datetime import datetime, timezone

import numpy as np
import pytest

from hackmatch.agents import TeamAssemblyAgent
from hackmatch.compatibility import CompatibilityScorer
from hackmatch.config import TeamAssemblyConfig, TeamScoreWeights
from hackmatch.events import Event, EventType
from hackmatch.models import CandidateProfile, SearchStrategy, TeamRequirement
from hackmatch.profile_pool import ProfilePool
from hackmatch.team_optimizer import CANCELLED_ERROR, TeamOptimizer, TeamScorer, dedupe_candidates

SKILL_ROTATION = [
    ["React", "TypeScript"],
    ["Python", "Django"],
    ["Figma", "UI/UX"],
    ["AWS", "Docker"],
    ["Marketing"],
    ["Go", "PostgreSQL"],
    ["Machine Learning", "Python"],
]


def profile(profile_id, skills, years=0.0):
    return CandidateProfile(id=profile_id, skills=skills, experience_years=years)


@pytest.fixture
def small_pool():
    return [
        profile("fe", ["React", "TypeScript"], 3),
        profile("be", ["Python", "Django"], 4),
        profile("ds", ["Figma", "UI/UX"], 2),
        profile("fe2", ["React", "JavaScript"], 3),
        profile("be2", ["Python", "Flask"], 3),
        profile("pm", ["Marketing"], 1),
    ]


@pytest.fixture
def large_pool():
    return [
        profile(f"c{i}", SKILL_ROTATION[i % len(SKILL_ROTATION)], i % 8)
        for i in range(30)
    ]


def no_deadline(**overrides):
    return TeamAssemblyConfig(time_budget_seconds=None, **overrides)


def rotation_pool(size):
    return [profile(f"c{i}", SKILL_ROTATION[i % len(SKILL_ROTATION)], i % 8) for i in range(size)]


class CountingScorer(CompatibilityScorer):
    """Compatibility scorer that counts pair evaluations."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def score(self, a, b):
        self.calls += 1
        return super().score(a, b)


class TestTeamScorer:
    """Tests for TeamScorer."""

    def test_skill_coverage(self):
        """Test coverage of required skills."""
        scorer = TeamScorer()
        members = [profile("a", ["React"]), profile("b", ["python"])]

        assert scorer.skill_coverage(members, []) == 1.0
        assert scorer.skill_coverage(members, ["react", "Go"]) == 0.5
        assert scorer.skill_coverage(members, ["React", "Python"]) == 1.0

    def test_preferred_skills_weigh_less(self):
        """Test preferred skills count half as much as required ones."""
        scorer = TeamScorer()
        members = [profile("a", ["React"]), profile("b", ["Go"])]

        assert scorer.skill_coverage(members, ["React"], ["Go", "Figma"]) == pytest.approx(0.75)
        assert scorer.skill_coverage(members, [], ["Go", "Figma"]) == pytest.approx(0.5)
        assert scorer.skill_coverage(members, ["React"], ["react"]) == 1.0

    def test_preferred_skill_weight_is_configurable(self):
        """Test the preferred skill weight comes from the config."""
        optimizer = TeamOptimizer(config=no_deadline(preferred_skill_weight=1.0))
        members = [profile("a", ["React"])]

        assert optimizer.team_scorer.skill_coverage(members, ["React"], ["Go"]) == pytest.approx(0.5)

    def test_diversity_of_distinct_skills(self):
        """Test four members with unrelated skills are fully diverse."""
        members = [
            profile("a", ["React"]),
            profile("b", ["Python"]),
            profile("c", ["Figma"]),
            profile("d", ["AWS"]),
        ]
        assert TeamScorer().calculate_diversity(members) == pytest.approx(1.0)

    def test_diversity_with_repeated_skill(self):
        """Test repeated skills lower the uniqueness half."""
        members = [profile("a", ["Python"]), profile("b", ["Python"])]
        assert TeamScorer().calculate_diversity(members) == pytest.approx(0.75)

    def test_diversity_with_single_category(self):
        """Test a single category lowers the spread half."""
        members = [profile("a", ["React"]), profile("b", ["Vue.js"])]
        assert TeamScorer().calculate_diversity(members) == pytest.approx(0.75)

    def test_diversity_degenerate_teams(self):
        """Test single members and skill-less teams."""
        scorer = TeamScorer()
        assert scorer.calculate_diversity([profile("a", ["React", "Python"])]) == 0.0
        assert scorer.calculate_diversity([profile("a", []), profile("b", [])]) == 0.0

    def test_team_compatibility_of_one(self):
        """Test a single member is fully compatible with itself."""
        assert TeamScorer().team_compatibility([profile("a", ["Go"])]) == 100.0

    def test_calculate_team_score(self):
        """Test the weighted combination."""
        scorer = TeamScorer()
        members = [profile("a", ["React"]), profile("b", ["Python"])]
        team = scorer.evaluate(members, ["React", "Python"])

        expected = 0.4 * team.skill_coverage + 0.3 * team.diversity_score + 0.3 * team.compatibility_score / 100
        assert scorer.calculate_team_score(members, ["React", "Python"]) == pytest.approx(expected)
        assert 0 <= team.overall_score <= 1

    def test_weights_are_normalized(self):
        """Test weights that do not sum to one still give a score in [0, 1]."""
        scorer = TeamScorer(weights=TeamScoreWeights(skill_coverage=4, diversity=0, compatibility=0))
        members = [profile("a", ["React"]), profile("b", ["Python"])]

        assert scorer.calculate_team_score(members, ["React", "Go"]) == pytest.approx(0.5)


class TestTeamOptimizer:
    """Tests for TeamOptimizer."""

    def test_exhaustive_finds_best_team(self, small_pool):
        """Test small pools are searched exhaustively."""
        optimizer = TeamOptimizer(config=no_deadline())
        requirement = TeamRequirement(team_size=3, required_skills=["React", "Python", "Figma"])

        result = optimizer.form_team(requirement, small_pool)

        assert result.success is True
        team = result.team
        assert team.search.strategy == SearchStrategy.EXHAUSTIVE
        assert team.search.evaluations == 20
        assert team.skill_coverage == 1.0
        assert "ds" in team.member_ids

        best = max(
            optimizer.team_scorer.calculate_team_score(list(members), requirement.required_skills)
            for members in itertools.combinations(small_pool, 3)
        )
        assert team.overall_score == pytest.approx(best)

    def test_team_scores_match_scorer(self, small_pool):
        """Test the reported components agree with TeamScorer."""
        optimizer = TeamOptimizer(config=no_deadline())
        requirement = TeamRequirement(team_size=2, required_skills=["Python"])

        team = optimizer.form_team(requirement, small_pool).team
        evaluated = optimizer.team_scorer.evaluate(team.members, requirement.required_skills)

        assert team.overall_score == pytest.approx(evaluated.overall_score)
        assert team.diversity_score == pytest.approx(evaluated.diversity_score)
        assert team.compatibility_score == pytest.approx(evaluated.compatibility_score)

    def test_insufficient_candidates(self, small_pool):
        """Test a pool smaller than the team is a failure value."""
        result = TeamOptimizer().form_team(TeamRequirement(team_size=8), small_pool)

        assert result.success is False
        assert result.error == "insufficient candidates: need 8, have 6"
        assert result.shortfall == 2
        assert result.team is None

    def test_duplicates_do_not_count(self):
        """Test repeated ids count once towards the pool size."""
        a = profile("a", ["React"])
        candidates = [a, a, profile("b", ["Python"])]

        assert len(dedupe_candidates(candidates)) == 2
        result = TeamOptimizer().form_team(TeamRequirement(team_size=3), candidates)

        assert result.success is False
        assert result.shortfall == 1

    def test_team_of_whole_pool(self, small_pool):
        """Test a team as large as the pool takes everyone."""
        result = TeamOptimizer().form_team(TeamRequirement(team_size=6), small_pool)

        assert result.success is True
        assert sorted(result.team.member_ids) == sorted(c.id for c in small_pool)

    def test_evolutionary_never_below_baseline(self, large_pool):
        """Test the population search is used on large pools and beats the first-N team."""
        optimizer = TeamOptimizer(config=no_deadline(), rng=np.random.default_rng(3))
        requirement = TeamRequirement(team_size=4, required_skills=["React", "Python", "Figma", "AWS"])

        result = optimizer.form_team(requirement, large_pool)

        baseline = optimizer.team_scorer.calculate_team_score(large_pool[:4], requirement.required_skills)
        team = result.team
        assert team.search.strategy == SearchStrategy.EVOLUTIONARY
        assert team.overall_score >= baseline - 1e-9
        assert 1 <= team.search.generations <= 40
        assert team.search.stopped_reason in ("stagnation", "max_generations")
        assert len(set(team.member_ids)) == 4

    def test_seeded_search_is_reproducible(self, large_pool):
        """Test the same seed gives the same team."""
        requirement = TeamRequirement(team_size=4, required_skills=["Go", "Figma"])

        first = TeamOptimizer(config=no_deadline(seed=11)).form_team(requirement, large_pool)
        second = TeamOptimizer(config=no_deadline(seed=11)).form_team(requirement, large_pool)

        assert first.team.member_ids == second.team.member_ids
        assert first.team.search.generations == second.team.search.generations

    def test_cancelled_search(self, small_pool):
        """Test a set cancel signal stops the search with a failure."""
        cancel = threading.Event()
        cancel.set()

        result = TeamOptimizer().form_team(TeamRequirement(team_size=3), small_pool, cancel)

        assert result.success is False
        assert result.error == CANCELLED_ERROR

    def test_deadline_returns_best_so_far(self, small_pool):
        """Test the time budget stops the search with the best team found."""
        ticks = itertools.count(0, 100)
        optimizer = TeamOptimizer(
            config=TeamAssemblyConfig(time_budget_seconds=1),
            clock=lambda: next(ticks),
        )

        result = optimizer.form_team(TeamRequirement(team_size=3), small_pool)

        assert result.success is True
        assert result.team.member_ids == ["fe", "be", "ds"]
        assert result.team.search.stopped_reason == "deadline"

    def test_async_matches_sync(self, small_pool):
        """Test the async search gives the same exhaustive result."""
        optimizer = TeamOptimizer(config=no_deadline())
        requirement = TeamRequirement(team_size=3, required_skills=["React", "Figma"])

        sync_result = optimizer.form_team(requirement, small_pool)
        async_result = asyncio.run(optimizer.form_team_async(requirement, small_pool))

        assert async_result.team.member_ids == sync_result.team.member_ids


class TestTeamAssemblyAgent:
    """Tests for TeamAssemblyAgent."""

    def test_formation_request_publishes_team(self, dispatcher, collector, small_pool):
        """Test a formation request yields team.formed."""
        agent = TeamAssemblyAgent(dispatcher, config=no_deadline())
        agent.start()

        dispatcher.publish(EventType.TEAM_FORMATION_REQUESTED, {
            "requirement": {"teamSize": 3, "requiredSkills": ["react", "python", "figma"], "hackathonId": "h1"},
            "candidates": [candidate.model_dump() for candidate in small_pool],
        })

        formed = collector.of_type(EventType.TEAM_FORMED)
        assert len(formed) == 1
        payload = formed[0].payload
        assert payload["contextId"] == "h1"
        assert len(payload["team"]["members"]) == 3
        assert payload["team"]["skill_coverage"] == 1.0

    def test_formation_request_failure(self, dispatcher, collector, small_pool):
        """Test an impossible request yields team.formation_failed."""
        agent = TeamAssemblyAgent(dispatcher)
        agent.start()

        dispatcher.publish(EventType.TEAM_FORMATION_REQUESTED, {
            "requirement": {"teamSize": 5, "contextId": "h2"},
            "candidates": [candidate.model_dump() for candidate in small_pool[:2]],
        })

        failed = collector.of_type(EventType.TEAM_FORMATION_FAILED)
        assert [event.payload for event in failed] == [{
            "contextId": "h2",
            "reason": "insufficient candidates: need 5, have 2",
            "shortfall": 3,
        }]
        assert collector.of_type(EventType.TEAM_FORMED) == []

    def test_formation_request_uses_pool(self, dispatcher, collector, small_pool):
        """Test requests without candidates draw from the shared pool."""
        agent = TeamAssemblyAgent(dispatcher, config=no_deadline(), pool=ProfilePool(small_pool))
        agent.start()

        dispatcher.publish(EventType.TEAM_FORMATION_REQUESTED, {"requirement": {"teamSize": 2}})

        assert len(collector.of_type(EventType.TEAM_FORMED)) == 1

    def test_formation_request_without_candidates_or_pool(self, dispatcher, collector):
        """Test a request with nothing to search is a system error."""
        agent = TeamAssemblyAgent(dispatcher)
        agent.start()

        dispatcher.publish(EventType.TEAM_FORMATION_REQUESTED, {"requirement": {"teamSize": 2}})

        assert collector.of_type(EventType.TEAM_FORMED) == []
        assert len(collector.of_type(EventType.SYSTEM_ERROR)) == 1

    def test_form_team_task(self, small_pool):
        """Test the form_team operation accepts models."""
        agent = TeamAssemblyAgent(config=no_deadline())
        agent.start()

        result = asyncio.run(agent.process_task("form_team", {
            "requirement": TeamRequirement(team_size=2, required_skills=["Figma"]),
            "candidates": small_pool,
        }))

        assert result.success is True
        assert "ds" in result.team.member_ids

    def test_score_tasks(self):
        """Test the scoring operations with raw payloads."""
        agent = TeamAssemblyAgent()
        agent.start()
        members = [{"id": "a", "skills": ["React"]}, {"id": "b", "skills": ["Python"]}]

        score = asyncio.run(agent.process_task("calculate_team_score", {
            "members": members, "requiredSkills": ["React", "Python"],
        }))
        diversity = asyncio.run(agent.process_task("calculate_diversity", {"members": members}))

        assert 0 < score <= 1
        assert diversity == pytest.approx(1.0)

    def test_preset_cancel_event(self, large_pool):
        """Test a search started with a set cancel event fails."""
        agent = TeamAssemblyAgent(config=no_deadline())

        async def scenario():
            cancel = asyncio.Event()
            cancel.set()
            return await agent.form_team(TeamRequirement(team_size=4), large_pool, cancel)

        result = asyncio.run(scenario())

        assert result.success is False
        assert result.error == CANCELLED_ERROR

    def test_cancel_all(self, large_pool):
        """Test cancel_all stops a running search."""
        agent = TeamAssemblyAgent(config=no_deadline())

        async def scenario():
            task = asyncio.create_task(agent.form_team(TeamRequirement(team_size=4), large_pool))
            await asyncio.sleep(0)
            cancelled = agent.cancel_all()
            return cancelled, await task

        cancelled, result = asyncio.run(scenario())

        assert cancelled == 1
        assert result.error == CANCELLED_ERROR
        assert agent.cancel_all() == 0


class TestTeamScenarios:
    """End-to-end team formation scenarios."""

    def test_team_covering_all_required_skills(self):
        """Test a pool that can cover every required skill yields full coverage."""
        pool = [
            profile("p1", ["JavaScript", "React"], 3),
            profile("p2", ["Python", "Django"], 4),
            profile("p3", ["Design", "Figma"], 2),
            profile("p4", ["Marketing"], 1),
            profile("p5", ["JavaScript"], 2),
            profile("p6", ["Python"], 5),
        ]
        requirement = TeamRequirement(
            team_size=4, required_skills=["JavaScript", "Python", "Design", "Marketing"],
        )

        result = TeamOptimizer(config=no_deadline()).form_team(requirement, pool)

        assert result.success is True
        assert result.team.skill_coverage == pytest.approx(1.0)
        assert len(result.team.members) == 4

    def test_team_larger_than_pool(self):
        """Test two candidates cannot make a team of five."""
        pool = [profile("a", ["React"]), profile("b", ["Python"])]

        result = TeamOptimizer().form_team(TeamRequirement(team_size=5), pool)

        assert result.success is False
        assert "insufficient candidates" in result.error
        assert result.shortfall == 3


class TestSearchBudget:
    """Tests that the time budget and cancellation cover all scoring work."""

    def test_pairs_are_scored_on_demand(self):
        """Test a search stopped at once scores only the baseline pairs."""
        counting = CountingScorer()
        ticks = itertools.count(0, 100)
        optimizer = TeamOptimizer(
            TeamScorer(counting),
            config=TeamAssemblyConfig(time_budget_seconds=1),
            clock=lambda: next(ticks),
        )

        result = optimizer.form_team(TeamRequirement(team_size=3), rotation_pool(300))

        assert result.success is True
        assert result.team.member_ids == ["c0", "c1", "c2"]
        assert result.team.search.stopped_reason == "deadline"
        assert counting.calls == 3

    def test_large_pool_respects_time_budget(self):
        """Test a large pool with a small budget returns promptly."""
        pool = rotation_pool(700)
        optimizer = TeamOptimizer(config=TeamAssemblyConfig(time_budget_seconds=0.2, seed=1))

        started = time.monotonic()
        result = optimizer.form_team(TeamRequirement(team_size=4, required_skills=["React", "Go"]), pool)
        elapsed = time.monotonic() - started

        assert result.success is True
        assert elapsed < 2.0

    def test_async_search_yields_to_the_loop(self):
        """Test other tasks keep running while a search is in progress."""
        optimizer = TeamOptimizer(config=no_deadline(seed=2))

        async def scenario():
            ticks = 0
            done = False

            async def ticker():
                nonlocal ticks
                while not done:
                    ticks += 1
                    await asyncio.sleep(0)

            task = asyncio.create_task(ticker())
            result = await optimizer.form_team_async(TeamRequirement(team_size=3), rotation_pool(500))
            done = True
            await task
            return result, ticks

        result, ticks = asyncio.run(scenario())

        assert result.success is True
        assert ticks >= result.team.search.generations >= 1


class TestRequesterAndThreshold:
    """Tests for pinned requesters, preferred skills and the minimum score."""

    def test_requirement_aliases(self):
        """Test camelCase requirement fields."""
        requirement = TeamRequirement.model_validate({
            "teamSize": 2, "requesterId": "fe", "preferredSkills": ["figma", "js"],
        })

        assert requirement.requester_id == "fe"
        assert requirement.preferred_skills == ["Figma", "JavaScript"]

    def test_requester_is_pinned_in_exhaustive_search(self, small_pool):
        """Test the requester leads every team the exhaustive search considers."""
        optimizer = TeamOptimizer(config=no_deadline())
        requirement = TeamRequirement(
            team_size=3, required_skills=["React", "Python", "Figma"], requester_id="pm",
        )

        team = optimizer.form_team(requirement, small_pool).team

        assert team.member_ids[0] == "pm"
        assert len(team.members) == 3
        assert team.search.evaluations == 10
        assert team.skill_coverage == pytest.approx(2 / 3)

    def test_requester_is_pinned_in_evolutionary_search(self, large_pool):
        """Test the requester stays on the team through crossover and mutation."""
        optimizer = TeamOptimizer(config=no_deadline(mutation_rate=0.9), rng=np.random.default_rng(5))
        requirement = TeamRequirement(team_size=4, required_skills=["Figma", "AWS"], requester_id="c17")

        team = optimizer.form_team(requirement, large_pool).team

        assert team.search.strategy == SearchStrategy.EVOLUTIONARY
        assert team.member_ids[0] == "c17"
        assert len(set(team.member_ids)) == 4

    def test_unknown_requester(self, small_pool):
        """Test a requester missing from the pool is a failure value."""
        result = TeamOptimizer().form_team(TeamRequirement(team_size=2, requester_id="ghost"), small_pool)

        assert result.success is False
        assert result.error == "requester not among candidates: ghost"
        assert result.shortfall is None

    def test_preferred_skills_steer_the_search(self, small_pool):
        """Test a preferred skill breaks the tie between otherwise similar teams."""
        optimizer = TeamOptimizer(config=no_deadline())
        requirement = TeamRequirement(team_size=2, required_skills=["React"], preferred_skills=["Flask"])

        team = optimizer.form_team(requirement, small_pool).team

        assert team.skill_coverage == 1.0
        assert "be2" in team.member_ids

    def test_low_score_is_flagged(self, small_pool):
        """Test a best team below the minimum score is flagged."""
        strict = TeamOptimizer(config=no_deadline(min_acceptable_score=0.99))
        lenient = TeamOptimizer(config=no_deadline(min_acceptable_score=0.1))

        low = strict.form_team(TeamRequirement(team_size=2), small_pool)
        ok = lenient.form_team(TeamRequirement(team_size=2), small_pool)

        assert low.success is True
        assert low.low_score is True
        assert ok.low_score is False

    def test_agent_reports_low_score_team(self, dispatcher, collector, small_pool):
        """Test the agent does not form a team scoring below the minimum."""
        agent = TeamAssemblyAgent(dispatcher, config=no_deadline(min_acceptable_score=0.99))
        agent.start()

        dispatcher.publish(EventType.TEAM_FORMATION_REQUESTED, {
            "requirement": {"teamSize": 2, "contextId": "h3"},
            "candidates": [candidate.model_dump() for candidate in small_pool],
        })

        assert collector.of_type(EventType.TEAM_FORMED) == []
        payload = collector.of_type(EventType.TEAM_FORMATION_FAILED)[0].payload
        assert payload["contextId"] == "h3"
        assert payload["reason"].startswith("team score ")
        assert len(payload["team"]["members"]) == 2
        assert payload["suggestedCandidates"] == [c.id for c in small_pool]


class TestMalformedRequests:
    """Tests that malformed formation requests are dropped without a system error."""

    @pytest.mark.parametrize("payload", [
        {"candidates": []},
        {"requirement": {"teamSize": 0}, "candidates": []},
        {"requirement": {"teamSize": 1}, "candidates": [{"skills": ["Go"]}]},
    ])
    def test_malformed_request_is_dropped(self, dispatcher, collector, payload):
        """Test invalid payloads produce no outcome and no system.error."""
        agent = TeamAssemblyAgent(dispatcher)
        agent.start()

        dispatcher.publish(EventType.TEAM_FORMATION_REQUESTED, payload)

        assert collector.of_type(EventType.TEAM_FORMED) == []
        assert collector.of_type(EventType.TEAM_FORMATION_FAILED) == []
        assert collector.of_type(EventType.SYSTEM_ERROR) == []


class TestStopWhileQueued:
    """Tests for requests waiting behind a running search when the agent stops."""

    def test_queued_request_is_dropped_on_stop(self, dispatcher, collector, large_pool):
        """Test stopping cancels the running search and drops the queued one."""
        agent = TeamAssemblyAgent(dispatcher, config=no_deadline(stagnation_limit=40))
        agent.start()

        def request(second):
            return Event(
                type=EventType.TEAM_FORMATION_REQUESTED.value,
                payload={
                    "requirement": {"teamSize": 4, "contextId": f"h{second}"},
                    "candidates": [candidate.model_dump() for candidate in large_pool],
                },
                timestamp=datetime(2024, 1, 1, 0, 0, second, tzinfo=timezone.utc),
            )

        async def scenario():
            first = asyncio.create_task(agent.handle_event(request(1)))
            second = asyncio.create_task(agent.handle_event(request(2)))
            for _ in range(3):
                await asyncio.sleep(0)
            agent.stop()
            await asyncio.gather(first, second)

        asyncio.run(scenario())

        assert collector.of_type(EventType.TEAM_FORMED) == []
        failed = collector.of_type(EventType.TEAM_FORMATION_FAILED)
        assert [event.payload["reason"] for event in failed] == [CANCELLED_ERROR]
        assert failed[0].payload["contextId"] == "h1"
