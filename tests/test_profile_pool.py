"""Tests for ProfilePool."""

from hackmatch.models import CandidateProfile
from hackmatch.profile_pool import ProfilePool


class TestProfilePool:
    """Tests for ProfilePool."""

    def test_register_profile(self):
        """Test registering a profile."""
        pool = ProfilePool()

        replaced = pool.register(CandidateProfile(id="u1", skills=["Python"]))

        assert replaced is False
        assert pool.count() == 1
        assert "u1" in pool
        assert pool.get("u1").skills == ["Python"]
        assert pool.updated_at("u1") is not None

    def test_register_replaces_profile(self):
        """Test a newer profile replaces the old one in place."""
        pool = ProfilePool([CandidateProfile(id="u1"), CandidateProfile(id="u2")])

        replaced = pool.register(CandidateProfile(id="u1", skills=["Rust"]))

        assert replaced is True
        assert len(pool) == 2
        assert [p.id for p in pool.list_all()] == ["u1", "u2"]
        assert pool.get("u1").skills == ["Rust"]

    def test_unregister_profile(self):
        """Test unregistering a profile."""
        pool = ProfilePool([CandidateProfile(id="u1")])

        assert pool.unregister("u1") is True
        assert pool.unregister("u1") is False
        assert pool.get("u1") is None
        assert pool.updated_at("u1") is None

    def test_clear(self):
        """Test clearing the pool."""
        pool = ProfilePool([CandidateProfile(id="u1"), CandidateProfile(id="u2")])
        pool.clear()
        assert pool.count() == 0
        assert pool.list_all() == []
