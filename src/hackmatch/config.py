"""Configuration module for hackmatch."""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from hackmatch.errors import ConfigError


class RuntimeConfig(BaseModel):
    """Agent runtime configuration."""
    dedup_ttl_seconds: float = 3600.0
    task_timeout_seconds: float = 30.0


class ProfileExtractionConfig(BaseModel):
    """Profile extraction configuration."""
    max_skills: int = 20
    max_experience_entries: int = 10
    max_education_entries: int = 5
    summary_max_length: int = 200


class CompatibilityWeights(BaseModel):
    """Relative weights of the four compatibility sub-scores."""
    skill_overlap: float = Field(default=0.35, ge=0)
    complementary_skills: float = Field(default=0.25, ge=0)
    experience_balance: float = Field(default=0.25, ge=0)
    preference_alignment: float = Field(default=0.15, ge=0)


class CompatibilityConfig(BaseModel):
    """Compatibility scoring configuration."""
    weights: CompatibilityWeights = Field(default_factory=CompatibilityWeights)
    experience_tolerance: float = 2.0
    experience_falloff: float = 5.0
    neutral_preference_score: float = 0.5
    default_limit: int = 10


class TeamScoreWeights(BaseModel):
    """Weights of the team objective; they should sum to 1."""
    skill_coverage: float = Field(default=0.4, ge=0)
    diversity: float = Field(default=0.3, ge=0)
    compatibility: float = Field(default=0.3, ge=0)


class TeamAssemblyConfig(BaseModel):
    """Team assembly configuration."""
    weights: TeamScoreWeights = Field(default_factory=TeamScoreWeights)
    population_size: int = 20
    max_generations: int = 40
    stagnation_limit: int = 6
    mutation_rate: float = 0.2
    exhaustive_limit: int = 500
    time_budget_seconds: Optional[float] = 10.0
    preferred_skill_weight: float = Field(default=0.5, ge=0)
    min_acceptable_score: Optional[float] = None
    seed: Optional[int] = None
    serialize_requests: bool = True


class ManagerConfig(BaseModel):
    """Agent manager configuration."""
    inactivity_threshold_seconds: float = 300.0
    auto_start: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Config(BaseModel):
    """Main configuration for hackmatch."""
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    profile_extraction: ProfileExtractionConfig = Field(default_factory=ProfileExtractionConfig)
    compatibility: CompatibilityConfig = Field(default_factory=CompatibilityConfig)
    team_assembly: TeamAssemblyConfig = Field(default_factory=TeamAssemblyConfig)
    manager: ManagerConfig = Field(default_factory=ManagerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        try:
            return cls(**data)
        except (TypeError, ValidationError) as e:
            raise ConfigError(f"invalid configuration in {path}: {e}") from e

    @classmethod
    def from_default_locations(cls) -> "Config":
        """Load configuration from default locations."""
        default_paths = [
            Path("hackmatch.yaml"),
            Path("hackmatch.yml"),
            Path("config.yaml"),
        ]

        for path in default_paths:
            if path.exists():
                return cls.from_yaml(path)

        return cls()

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key."""
        keys = key.split(".")
        value = self.model_dump()

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k, default)
            else:
                return default

        return value
