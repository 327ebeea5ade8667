"""Configuration models and YAML loader for the recommendation engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

_WEIGHT_TOLERANCE = 1e-6


class ScoringConfig(BaseModel):
    """Sub-score weights and tuning constants for hybrid scoring.

    The six weights must sum to 1.0 so the combined score stays on the
    same 0-100 scale as the individual sub-scores.
    """

    interest_weight: float = Field(default=0.40, ge=0.0, le=1.0)
    skill_weight: float = Field(default=0.25, ge=0.0, le=1.0)
    location_weight: float = Field(default=0.05, ge=0.0, le=1.0)
    popularity_weight: float = Field(default=0.15, ge=0.0, le=1.0)
    recency_weight: float = Field(default=0.10, ge=0.0, le=1.0)
    explore_weight: float = Field(default=0.05, ge=0.0, le=1.0)
    decay_rate: float = Field(default=0.1, ge=0.0)
    popularity_scale: float = Field(default=10.0, gt=0.0)

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> "ScoringConfig":
        total = (
            self.interest_weight
            + self.skill_weight
            + self.location_weight
            + self.popularity_weight
            + self.recency_weight
            + self.explore_weight
        )
        if abs(total - 1.0) > _WEIGHT_TOLERANCE:
            msg = f"scoring weights must sum to 1.0, got {total:.4f}"
            raise ValueError(msg)
        return self


class RankingConfig(BaseModel):
    """Result size defaults and bounds."""

    default_limit: int = Field(default=20, ge=1)
    max_limit: int = Field(default=100, ge=1)
    feed_limit: int = Field(default=30, ge=1)
    similar_limit: int = Field(default=10, ge=1)

    def clamp(self, limit: int | None, default: int | None = None) -> int:
        """Bound a requested limit to [0, max_limit]; zero or negative yields no items."""
        if limit is None:
            limit = default if default is not None else self.default_limit
        return max(0, min(limit, self.max_limit))


class LearningConfig(BaseModel):
    """Weight increments applied per engagement type."""

    save_weight: float = Field(default=1.0, ge=0.0)
    like_weight: float = Field(default=1.0, ge=0.0)
    click_through_weight: float = Field(default=0.5, ge=0.0)
    create_missing_preferences: bool = False


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/recommendations.db"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
