"""Hybrid relevance scoring for content items.

Score range: 0-100 (clamped). Six sub-scores, each 0-100, blended by the
weights in ScoringConfig:

  personal   interest_match, skill_match, location_match
  community  popularity (time-decayed), recency, explore (random)

Interests and skills come from the learned preferences when the user has
any, otherwise from the onboarding profile. The two sources are never mixed.
Location works the other way round: the profile location wins and the
preferences mirror is only a fallback.
"""

import logging
import random
from collections.abc import Iterable
from datetime import datetime

from recengine.core.config import ScoringConfig
from recengine.core.schemas import (
    ContentItem,
    LocationData,
    ScoreBreakdown,
    ScoredCandidate,
    UserPreferences,
    UserProfile,
)

logger = logging.getLogger(__name__)

REMOTE_KEYWORDS = ("remote", "virtual", "online")

NEUTRAL_LOCATION_SCORE = 50.0
CITY_SCORE = 100.0
PROVINCE_SCORE = 80.0
COUNTRY_SCORE = 60.0
NO_LOCATION_MATCH_SCORE = 20.0

# (max age in days, score); first bucket the age fits in wins.
_RECENCY_STEPS: list[tuple[float, float]] = [
    (1.0, 100.0),
    (7.0, 80.0),
    (30.0, 60.0),
    (90.0, 40.0),
]
_RECENCY_FLOOR = 20.0

_SECONDS_PER_DAY = 86400.0


def score_item(
    item: ContentItem,
    profile: UserProfile | None,
    preferences: UserPreferences | None,
    *,
    config: ScoringConfig,
    now: datetime,
    rng: random.Random,
) -> ScoredCandidate:
    """Score a single item for one user.

    Args:
        item: The content item to score.
        profile: Onboarding profile, or None.
        preferences: Learned preference maps, or None.
        config: Weights and decay constants.
        now: Reference time for age-based sub-scores.
        rng: Random source for the explore sub-score.

    Returns:
        ScoredCandidate wrapping the item with a combined 0-100 score and its breakdown.
    """
    interests = _pick_terms(
        preferences.interests if preferences else None,
        profile.interests if profile else None,
    )
    skills = _pick_terms(
        preferences.skills if preferences else None,
        profile.skills if profile else None,
    )
    location = _pick_location(profile, preferences)
    age_days = age_in_days(item.created_at, now)

    breakdown = ScoreBreakdown(
        interest_match=interest_match(item.tags, interests),
        skill_match=skill_match(item.requirements, skills),
        location_match=location_match(item.location, location),
        popularity=decayed_popularity(item, age_days, config),
        recency=recency_score(age_days),
        explore=explore_score(rng),
    )

    score = (
        breakdown.interest_match * config.interest_weight
        + breakdown.skill_match * config.skill_weight
        + breakdown.location_match * config.location_weight
        + breakdown.popularity * config.popularity_weight
        + breakdown.recency * config.recency_weight
        + breakdown.explore * config.explore_weight
    )
    score = max(0.0, min(100.0, score))

    return ScoredCandidate(candidate=item, score=score, breakdown=breakdown)


def score_items(
    items: list[ContentItem],
    profile: UserProfile | None,
    preferences: UserPreferences | None,
    *,
    config: ScoringConfig,
    now: datetime,
    rng: random.Random,
) -> list[ScoredCandidate]:
    """Score a batch of items, sorted by score desc.

    The sort is stable, so equal scores keep their input order.
    """
    scored = [
        score_item(i, profile, preferences, config=config, now=now, rng=rng)
        for i in items
    ]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored


# ---------------------------------------------------------------------------
# Personal sub-scores
# ---------------------------------------------------------------------------


def interest_match(tags: list[str], interests: list[str]) -> float:
    """Share of the user's interests covered by the item's tags, 0-100."""
    if not tags or not interests:
        return 0.0
    matched = _count_matched(tags, interests)
    return min(100.0, matched / len(interests) * 100.0)


def skill_match(requirements: list[str], skills: list[str]) -> float:
    """Share of the item's requirements the user covers, 0-100.

    Divides by requirement count, so partial overlap on a stretch item
    still earns credit.
    """
    if not requirements or not skills:
        return 0.0
    matched = _count_matched(requirements, skills)
    return matched / len(requirements) * 100.0


def location_match(item_location: str, user_location: LocationData | None) -> float:
    """Tiered location score; the first rule that applies wins."""
    if user_location is None or user_location.is_empty():
        return NEUTRAL_LOCATION_SCORE

    text = item_location.lower()
    if any(kw in text for kw in REMOTE_KEYWORDS):
        return CITY_SCORE
    if user_location.city and user_location.city.lower() in text:
        return CITY_SCORE
    if user_location.province and user_location.province.lower() in text:
        return PROVINCE_SCORE
    if user_location.country and user_location.country.lower() in text:
        return COUNTRY_SCORE
    return NO_LOCATION_MATCH_SCORE


# ---------------------------------------------------------------------------
# Community sub-scores
# ---------------------------------------------------------------------------


def decayed_popularity(item: ContentItem, age_days: float, config: ScoringConfig) -> float:
    """Engagement total discounted by age, scaled to 0-100."""
    decayed = item.engagement_total / (1.0 + age_days * config.decay_rate)
    return min(decayed / config.popularity_scale, 100.0)


def recency_score(age_days: float) -> float:
    """Step function on age; bucket edges belong to the fresher bucket."""
    for max_days, score in _RECENCY_STEPS:
        if age_days <= max_days:
            return score
    return _RECENCY_FLOOR


def explore_score(rng: random.Random) -> float:
    """Uniform draw in [0, 100) to surface novel content."""
    return rng.random() * 100.0


def age_in_days(created_at: datetime, now: datetime) -> float:
    """Fractional days between created_at and now; future timestamps count as 0."""
    return max(0.0, (now - created_at).total_seconds() / _SECONDS_PER_DAY)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _terms_match(a: str, b: str) -> bool:
    a, b = a.lower(), b.lower()
    return a in b or b in a


def _count_matched(candidates: Iterable[str], terms: list[str]) -> int:
    """Count candidates that match at least one term (substring either way)."""
    return sum(1 for c in candidates if any(_terms_match(c, t) for t in terms))


def _pick_terms(
    learned: dict[str, float] | None,
    declared: list[str] | None,
) -> list[str]:
    """Learned weights win over declared profile terms; the profile is the fallback."""
    terms = list(learned) if learned else list(declared or [])
    # An empty term would substring-match every tag.
    return [t for t in terms if t.strip()]


def _pick_location(
    profile: UserProfile | None,
    preferences: UserPreferences | None,
) -> LocationData | None:
    """Profile location first, then the preferences mirror."""
    if profile is not None and not profile.location_data.is_empty():
        return profile.location_data
    if preferences is not None and preferences.location_data is not None:
        if not preferences.location_data.is_empty():
            return preferences.location_data
    return None
