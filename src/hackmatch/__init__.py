"""
hackmatch - Hackathon Matchmaking Agent Pipeline

An in-process, event-driven pipeline of cooperating agents that turns resume
text into structured profiles, scores teammate compatibility and assembles
balanced teams.
"""

from hackmatch.agent import Agent, AgentConfig, AgentMetrics, AgentSignal, AgentState, AgentStatus, DedupWindow
from hackmatch.agents import CompatibilityAgent, ProfileExtractionAgent, TeamAssemblyAgent
from hackmatch.compatibility import CompatibilityScorer
from hackmatch.config import Config
from hackmatch.errors import (
    AgentDisabledError,
    AgentNotFoundError,
    ConfigError,
    InsufficientCandidatesError,
    MatchmakingError,
    PayloadValidationError,
    ProcessingError,
)
from hackmatch.events import Event, EventDispatcher, EventType
from hackmatch.manager import AgentManager, SystemHealth, SystemStats, TaskResult
from hackmatch.models import (
    CandidateProfile,
    CompatibilityResult,
    MatchFilters,
    MatchResult,
    ParsedProfile,
    ParseResult,
    SearchStats,
    TeamComposition,
    TeamFormationResult,
    TeamRequirement,
)
from hackmatch.profile_parser import ProfileParser
from hackmatch.profile_pool import ProfilePool
from hackmatch.skills import canonicalize_skill, normalize_skills
from hackmatch.system import MatchmakingSystem
from hackmatch.team_optimizer import TeamOptimizer, TeamScorer

__version__ = "0.1.0"

__all__ = [
    "MatchmakingSystem",
    "Config",
    "Agent",
    "AgentConfig",
    "AgentMetrics",
    "AgentSignal",
    "AgentState",
    "AgentStatus",
    "DedupWindow",
    "AgentManager",
    "SystemHealth",
    "SystemStats",
    "TaskResult",
    "Event",
    "EventDispatcher",
    "EventType",
    "ProfileExtractionAgent",
    "CompatibilityAgent",
    "TeamAssemblyAgent",
    "ProfileParser",
    "ProfilePool",
    "CompatibilityScorer",
    "TeamScorer",
    "TeamOptimizer",
    "CandidateProfile",
    "CompatibilityResult",
    "MatchFilters",
    "MatchResult",
    "ParsedProfile",
    "ParseResult",
    "SearchStats",
    "TeamComposition",
    "TeamFormationResult",
    "TeamRequirement",
    "canonicalize_skill",
    "normalize_skills",
    "MatchmakingError",
    "PayloadValidationError",
    "InsufficientCandidatesError",
    "ProcessingError",
    "AgentDisabledError",
    "AgentNotFoundError",
    "ConfigError",
]
