"""Core data models for the recommendation engine."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ContentType = Literal["opportunity", "event", "job", "resource"]
EngagementType = Literal["save", "like", "click_through"]

# Fetch order for "all" requests; also the ranking tie-break order across types.
CONTENT_TYPES: tuple[ContentType, ...] = ("opportunity", "event", "job", "resource")

COUNTER_FIELDS = ("likes_count", "saves_count", "views")


def resolve_types(content_type: str) -> tuple[ContentType, ...]:
    """Expand a request type into the concrete content types it covers."""
    if content_type == "all":
        return CONTENT_TYPES
    if content_type not in CONTENT_TYPES:
        msg = f"Unknown content type '{content_type}'. Expected one of {CONTENT_TYPES} or 'all'"
        raise ValueError(msg)
    return (content_type,)  # type: ignore[return-value]


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for v in values:
        v = v.strip()
        if v and v not in seen:
            seen.add(v)
            result.append(v)
    return result


class ContentItem(BaseModel):
    """A rankable piece of content.

    Frozen: the engine only reads snapshots. Counters are adjusted by the
    engagement layer through the store.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: ContentType
    title: str = ""
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    requirements: list[str] = Field(default_factory=list)
    location: str = ""
    created_at: datetime = Field(default_factory=datetime.now)
    likes_count: int = Field(default=0, ge=0)
    saves_count: int = Field(default=0, ge=0)
    views: int = Field(default=0, ge=0)
    status: str = "active"

    @field_validator("tags", "requirements")
    @classmethod
    def unique_terms(cls, v: list[str]) -> list[str]:
        return _dedupe(v)

    @field_validator("created_at")
    @classmethod
    def naive_local_time(cls, v: datetime) -> datetime:
        if v.tzinfo is not None:
            return v.astimezone().replace(tzinfo=None)
        return v

    @property
    def engagement_total(self) -> int:
        """Raw popularity: likes + saves + views, no decay."""
        return self.likes_count + self.saves_count + self.views


class Recommendation(ContentItem):
    """A content item as returned to callers, tagged with its content type."""

    content_type: ContentType

    @classmethod
    def from_item(cls, item: ContentItem) -> "Recommendation":
        return cls(**{**item.model_dump(), "content_type": item.type})


class LocationData(BaseModel):
    """Where a user is; every part is optional."""

    country: str | None = None
    province: str | None = None
    city: str | None = None

    def is_empty(self) -> bool:
        return not (self.country or self.province or self.city)


class UserProfile(BaseModel):
    """Static onboarding data."""

    user_id: str
    interests: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    location_data: LocationData = Field(default_factory=LocationData)


class UserPreferences(BaseModel):
    """Behavior-derived weight maps, grown by the preference learner."""

    user_id: str
    interests: dict[str, float] = Field(default_factory=dict)
    skills: dict[str, float] = Field(default_factory=dict)
    location_data: LocationData | None = None

    @field_validator("interests", "skills")
    @classmethod
    def non_negative_weights(cls, v: dict[str, float]) -> dict[str, float]:
        for term, weight in v.items():
            if weight < 0:
                msg = f"preference weight for '{term}' must be >= 0, got {weight}"
                raise ValueError(msg)
        return v


class ScoreBreakdown(BaseModel):
    """Per-factor sub-scores, each on a 0-100 scale."""

    model_config = ConfigDict(frozen=True)

    interest_match: float = Field(default=0.0, ge=0.0, le=100.0)
    skill_match: float = Field(default=0.0, ge=0.0, le=100.0)
    location_match: float = Field(default=0.0, ge=0.0, le=100.0)
    popularity: float = Field(default=0.0, ge=0.0, le=100.0)
    recency: float = Field(default=0.0, ge=0.0, le=100.0)
    explore: float = Field(default=0.0, ge=0.0, le=100.0)


class ScoredCandidate(BaseModel):
    """Wrapper that pairs a frozen ContentItem with its relevance score.

    Lives only for the duration of one ranking call.
    """

    model_config = ConfigDict(frozen=True)

    candidate: ContentItem
    score: float = Field(default=0.0, ge=0.0, le=100.0)
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)


class EngagementEvent(BaseModel):
    """A save, like or click-through on an item, as seen by the learner."""

    user_id: str
    engagement_type: EngagementType
    item: ContentItem
