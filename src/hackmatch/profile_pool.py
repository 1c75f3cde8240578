"""Profile pool module for the candidates known to the matching worker."""

from datetime import datetime
from typing import Iterable, Optional

from hackmatch.events import utc_now
from hackmatch.models import CandidateProfile


class ProfilePool:
    """In-memory candidate profiles keyed by id.

    Registering a profile under an existing id replaces it; the original
    registration order is kept for ranking ties.
    """

    def __init__(self, profiles: Optional[Iterable[CandidateProfile]] = None):
        self._profiles: dict[str, CandidateProfile] = {}
        self._updated_at: dict[str, datetime] = {}
        for profile in profiles or []:
            self.register(profile)

    def register(self, profile: CandidateProfile) -> bool:
        """Add or replace a profile. Returns True if it replaced one."""
        replaced = profile.id in self._profiles
        self._profiles[profile.id] = profile
        self._updated_at[profile.id] = utc_now()
        return replaced

    def unregister(self, profile_id: str) -> bool:
        """Remove a profile."""
        if profile_id not in self._profiles:
            return False

        del self._profiles[profile_id]
        del self._updated_at[profile_id]
        return True

    def get(self, profile_id: str) -> Optional[CandidateProfile]:
        """Get a profile by id."""
        return self._profiles.get(profile_id)

    def updated_at(self, profile_id: str) -> Optional[datetime]:
        return self._updated_at.get(profile_id)

    def list_all(self) -> list[CandidateProfile]:
        """List all profiles in registration order."""
        return list(self._profiles.values())

    def count(self) -> int:
        return len(self._profiles)

    def __contains__(self, profile_id: object) -> bool:
        return profile_id in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def clear(self) -> None:
        """Clear all profiles."""
        self._profiles.clear()
        self._updated_at.clear()
