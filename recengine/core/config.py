"""Configuration models and YAML loader for the recommendation engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from recengine.core.schemas import StrategyName

_SCORING_STRATEGIES = {
    StrategyName.RULE_BASED,
    StrategyName.CONTENT_BASED,
    StrategyName.COLLABORATIVE,
}


class RuleScoringConfig(BaseModel):
    """Weights and thresholds for rule-based scoring."""

    base_score: float = Field(default=0.5, ge=0.0, le=1.0)
    threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    stream_alignment: dict[str, list[str]] = Field(
        default_factory=lambda: {"Science": ["Physics", "Chemistry", "Maths", "Biology"]},
    )
    stream_bonus: float = Field(default=0.3, ge=0.0, le=1.0)
    degree_bonus: float = Field(default=0.2, ge=0.0, le=1.0)
    year_bonus: float = Field(default=0.2, ge=0.0, le=1.0)
    exam_interest_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    opportunity_interest_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    exam_popularity_threshold: int = Field(default=100, ge=0)
    opportunity_popularity_threshold: int = Field(default=50, ge=0)
    popularity_bonus: float = Field(default=0.1, ge=0.0, le=1.0)


class ContentScoringConfig(BaseModel):
    """Facet weights for content similarity against saved offerings."""

    subjects_weight: float = Field(default=0.4, gt=0.0)
    skills_weight: float = Field(default=0.3, gt=0.0)
    domains_weight: float = Field(default=0.2, gt=0.0)
    company_weight: float = Field(default=0.1, gt=0.0)
    organizer_weight: float = Field(default=0.1, gt=0.0)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)


class CollaborativeConfig(BaseModel):
    """Neighbor discovery limits."""

    max_neighbors: int = Field(default=20, ge=1)
    min_co_saves: int = Field(default=2, ge=1)


class GenerationConfig(BaseModel):
    """Generation run settings: which strategies run and how results are kept."""

    strategies: list[StrategyName] = Field(
        default_factory=lambda: [
            StrategyName.RULE_BASED,
            StrategyName.CONTENT_BASED,
            StrategyName.COLLABORATIVE,
        ],
    )
    strategy_timeout_s: float = Field(default=10.0, gt=0.0)
    exam_candidate_limit: int = Field(default=50, ge=1)
    opportunity_candidate_limit: int = Field(default=100, ge=1)
    merge_cap: int = Field(default=50, ge=1)
    expiry_days: int = Field(default=30, ge=1)

    @field_validator("strategies")
    @classmethod
    def known_scoring_strategies(cls, v: list[StrategyName]) -> list[StrategyName]:
        if not v:
            msg = "at least one strategy must be configured"
            raise ValueError(msg)
        unknown = [s.value for s in v if s not in _SCORING_STRATEGIES]
        if unknown:
            msg = f"not a scoring strategy: {', '.join(unknown)}"
            raise ValueError(msg)
        if len(set(v)) != len(v):
            msg = "strategies must not repeat"
            raise ValueError(msg)
        return v


class ApiConfig(BaseModel):
    """HTTP surface settings."""

    admin_token: str | None = None
    max_limit: int = Field(default=100, ge=1)


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/recommendations.db"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    rules: RuleScoringConfig = Field(default_factory=RuleScoringConfig)
    content: ContentScoringConfig = Field(default_factory=ContentScoringConfig)
    collaborative: CollaborativeConfig = Field(default_factory=CollaborativeConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
