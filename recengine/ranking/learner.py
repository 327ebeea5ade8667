"""Preference learner: turns engagement events into weight increments.

Best-effort by contract. A failure here is logged and dropped so the
action that produced the event (a save, a like) is never affected.

  save / like     +save_weight / +like_weight per tag (interests)
                  and per requirement (skills)
  click_through   +click_through_weight per tag (interests only)
"""

import logging

from recengine.core.config import LearningConfig
from recengine.core.schemas import EngagementEvent
from recengine.stores.base import PreferenceStore

logger = logging.getLogger(__name__)


class PreferenceLearner:
    """Applies additive updates to a user's preference weight maps.

    Usage::

        learner = PreferenceLearner(store, LearningConfig())
        await learner.learn(EngagementEvent(user_id="u1", engagement_type="like", item=item))
    """

    def __init__(self, store: PreferenceStore, config: LearningConfig) -> None:
        self._store = store
        self._config = config

    def deltas_for(self, event: EngagementEvent) -> tuple[dict[str, float], dict[str, float]]:
        """Return (interest deltas, skill deltas) for an event."""
        etype = event.engagement_type
        if etype == "click_through":
            return _increments(event.item.tags, self._config.click_through_weight), {}
        weight = self._config.save_weight if etype == "save" else self._config.like_weight
        return (
            _increments(event.item.tags, weight),
            _increments(event.item.requirements, weight),
        )

    async def learn(self, event: EngagementEvent) -> None:
        """Merge the event's deltas into the user's preferences. Never raises."""
        try:
            await self._learn(event)
        except Exception:
            logger.exception(
                "Preference update failed for '%s' (%s on %s '%s')",
                event.user_id, event.engagement_type, event.item.type, event.item.id,
            )

    async def _learn(self, event: EngagementEvent) -> None:
        interests, skills = self.deltas_for(event)
        if not interests and not skills:
            logger.debug("No tags or requirements on %s '%s' - nothing to learn",
                         event.item.type, event.item.id)
            return

        # create_preferences is idempotent; merge_preferences reports a missing document.
        if self._config.create_missing_preferences:
            if await self._store.create_preferences(event.user_id):
                logger.info("Created preferences for '%s' on first engagement", event.user_id)

        merged = await self._store.merge_preferences(
            event.user_id, interests=interests or None, skills=skills or None,
        )
        if not merged:
            logger.debug("No preferences for '%s' - skipping %s",
                         event.user_id, event.engagement_type)
            return
        logger.debug(
            "Learned from %s for '%s': %d interests, %d skills",
            event.engagement_type, event.user_id, len(interests), len(skills),
        )


def _increments(terms: list[str], weight: float) -> dict[str, float]:
    return {t: weight for t in terms} if weight > 0 else {}
