"""In-memory collaborators, for embedding the engine without a database."""

from collections import defaultdict
from collections.abc import Iterable, Mapping

from recengine.core.schemas import ContentItem, UserPreferences, UserProfile
from recengine.stores.base import ContentSource, PreferenceStore


class InMemoryContentSource(ContentSource):
    """Holds items per type in insertion order."""

    def __init__(self, items: Iterable[ContentItem] = ()) -> None:
        self._items: dict[str, dict[str, ContentItem]] = defaultdict(dict)
        for item in items:
            self.add(item)

    def add(self, item: ContentItem) -> None:
        self._items[item.type][item.id] = item

    async def list_active(self, content_type: str) -> list[ContentItem]:
        return [i for i in self._items[content_type].values() if i.status == "active"]

    async def get_item(self, content_type: str, item_id: str) -> ContentItem | None:
        return self._items[content_type].get(item_id)


class InMemoryPreferenceStore(PreferenceStore):
    """Profiles and preference documents keyed by user id."""

    def __init__(self) -> None:
        self._profiles: dict[str, UserProfile] = {}
        self._preferences: dict[str, UserPreferences] = {}

    def add_profile(self, profile: UserProfile) -> None:
        self._profiles[profile.user_id] = profile

    def add_preferences(self, preferences: UserPreferences) -> None:
        self._preferences[preferences.user_id] = preferences.model_copy(deep=True)

    async def get_profile(self, user_id: str) -> UserProfile | None:
        return self._profiles.get(user_id)

    async def get_preferences(self, user_id: str) -> UserPreferences | None:
        prefs = self._preferences.get(user_id)
        return prefs.model_copy(deep=True) if prefs is not None else None

    async def merge_preferences(
        self,
        user_id: str,
        interests: Mapping[str, float] | None = None,
        skills: Mapping[str, float] | None = None,
    ) -> bool:
        prefs = self._preferences.get(user_id)
        if prefs is None:
            return False
        # No await between read and write: increments are atomic on the event loop.
        for term, delta in (interests or {}).items():
            prefs.interests[term] = prefs.interests.get(term, 0.0) + delta
        for term, delta in (skills or {}).items():
            prefs.skills[term] = prefs.skills.get(term, 0.0) + delta
        return True

    async def create_preferences(self, user_id: str) -> bool:
        if user_id in self._preferences:
            return False
        self._preferences[user_id] = UserPreferences(user_id=user_id)
        return True
