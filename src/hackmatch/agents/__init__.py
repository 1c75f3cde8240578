"""Worker agents of the matchmaking pipeline."""

from hackmatch.agents.compatibility import CompatibilityAgent
from hackmatch.agents.profile_extraction import ProfileExtractionAgent
from hackmatch.agents.team_assembly import TeamAssemblyAgent

__all__ = [
    "CompatibilityAgent",
    "ProfileExtractionAgent",
    "TeamAssemblyAgent",
]
