"""Recommendation engine: wires stores, scorer, cold start and learner.

Data flow for a ranking request:
  1. Load profile + preferences (concurrently)
  2. Neither present → cold start (popularity only)
  3. Load active items for the requested type(s)
  4. Score → stable sort desc → truncate
  5. Strip scores, annotate content_type
"""

import asyncio
import json
import logging
import random
from collections.abc import Callable
from datetime import datetime

from pydantic import ValidationError

from recengine.core.config import Settings
from recengine.core.schemas import (
    ContentItem,
    EngagementEvent,
    Recommendation,
    resolve_types,
)
from recengine.ranking.cold_start import rank_by_popularity
from recengine.ranking.learner import PreferenceLearner
from recengine.ranking.matcher import similar_items
from recengine.ranking.scorer import score_items
from recengine.stores.base import (
    ContentSource,
    DataAccessError,
    ItemNotFoundError,
    PreferenceStore,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class RecommendationEngine:
    """Ranks content for users and learns from their engagement.

    Usage::

        engine = RecommendationEngine(content, prefs, settings, rng=random.Random(7))
        items = await engine.get_recommendations("u1", "job", limit=10)
        await engine.update_preferences_from_engagement("u1", "like", items[0])
    """

    def __init__(
        self,
        content_source: ContentSource,
        preference_store: PreferenceStore,
        settings: Settings | None = None,
        *,
        rng: random.Random | None = None,
        clock: Clock = datetime.now,
    ) -> None:
        self._content = content_source
        self._preferences = preference_store
        self._settings = settings or Settings()
        self._rng = rng or random.Random()
        self._clock = clock
        self._learner = PreferenceLearner(preference_store, self._settings.learning)

    async def get_recommendations(
        self,
        user_id: str,
        content_type: str = "all",
        limit: int | None = None,
    ) -> list[Recommendation]:
        """Personalized ranking; falls back to cold start for users with no data.

        Returns [] when a store fails.

        Raises:
            ValueError: If content_type is not a known type or 'all'.
        """
        types = resolve_types(content_type)
        limit = self._settings.ranking.clamp(limit)

        try:
            profile, preferences = await asyncio.gather(
                self._preferences.get_profile(user_id),
                self._preferences.get_preferences(user_id),
            )
            if profile is None and preferences is None:
                logger.info("No profile or preferences for '%s' - using cold start", user_id)
                ranked = rank_by_popularity(await self._load_active(types), limit)
                return _annotate(ranked)

            items = await self._load_active(types)
        except DataAccessError:
            logger.exception("Recommendation failed for '%s' (%s)", user_id, content_type)
            return []

        scored = score_items(
            items,
            profile,
            preferences,
            config=self._settings.scoring,
            now=self._clock(),
            rng=self._rng,
        )
        top = scored[:limit]
        if top:
            logger.debug(
                "Top item for '%s': %s '%s' score=%.2f %s",
                user_id, top[0].candidate.type, top[0].candidate.id,
                top[0].score, top[0].breakdown.model_dump(),
            )
        logger.info(
            "Ranked %d '%s' items for '%s', returning %d",
            len(items), content_type, user_id, len(top),
        )
        return _annotate([s.candidate for s in top])

    async def get_cold_start_recommendations(
        self,
        content_type: str = "all",
        limit: int | None = None,
    ) -> list[Recommendation]:
        """Popularity ranking with no personalization; also serves trending."""
        types = resolve_types(content_type)
        limit = self._settings.ranking.clamp(limit)
        try:
            items = await self._load_active(types)
        except DataAccessError:
            logger.exception("Cold-start ranking failed (%s)", content_type)
            return []
        return _annotate(rank_by_popularity(items, limit))

    async def get_personalized_feed(
        self,
        user_id: str,
        limit: int | None = None,
    ) -> list[Recommendation]:
        """Top items across all types, shuffled for presentation.

        Scores pick the set; the order is random. Use get_recommendations
        when a stable order is needed.
        """
        limit = self._settings.ranking.clamp(limit, self._settings.ranking.feed_limit)
        feed = await self.get_recommendations(user_id, "all", limit)
        self._rng.shuffle(feed)
        return feed

    async def get_similar_items(
        self,
        content_type: str,
        item_id: str,
        limit: int | None = None,
    ) -> list[Recommendation]:
        """Active items of the same type sharing a tag or category, newest first.

        Raises:
            ValueError: If content_type is 'all' or unknown.
            ItemNotFoundError: If the reference item is unknown or inactive.
        """
        if content_type == "all":
            msg = "similar items need a concrete content type, not 'all'"
            raise ValueError(msg)
        (ctype,) = resolve_types(content_type)
        limit = self._settings.ranking.clamp(limit, self._settings.ranking.similar_limit)

        try:
            reference = await self._content.get_item(ctype, item_id)
            if reference is None or reference.status != "active":
                msg = f"Reference {ctype} '{item_id}' not found"
                raise ItemNotFoundError(msg)
            candidates = await self._content.list_active(ctype)
        except DataAccessError:
            logger.exception("Similar-item lookup failed for %s '%s'", ctype, item_id)
            return []
        return _annotate(similar_items(reference, candidates, limit))

    async def update_preferences_from_engagement(
        self,
        user_id: str,
        engagement_type: str,
        item: ContentItem,
    ) -> None:
        """Fire-and-forget learning hook for the engagement layer. Never raises."""
        try:
            event = EngagementEvent(user_id=user_id, engagement_type=engagement_type, item=item)
        except ValidationError as e:
            logger.warning(
                "Ignoring invalid %s engagement from '%s': %s",
                engagement_type, user_id, e,
            )
            return
        await self._learner.learn(event)

    async def _load_active(self, types: tuple[str, ...]) -> list[ContentItem]:
        """Fetch active items per type concurrently, concatenated in type order."""
        batches = await asyncio.gather(*(self._content.list_active(t) for t in types))
        return [item for batch in batches for item in batch]


def _annotate(items: list[ContentItem]) -> list[Recommendation]:
    return [Recommendation.from_item(i) for i in items]


def export_recommendations_json(items: list[Recommendation]) -> str:
    """Export recommendations as a JSON string."""
    data = [i.model_dump(mode="json") for i in items]
    return json.dumps(data, indent=2)
