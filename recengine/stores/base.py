"""Abstract collaborators the engine reads content and preferences from."""

from abc import ABC, abstractmethod
from collections.abc import Mapping

from recengine.core.schemas import ContentItem, UserPreferences, UserProfile


class DataAccessError(Exception):
    """A content source or preference store could not be read or written."""


class ItemNotFoundError(LookupError):
    """A referenced content item does not exist or is not active."""


class ContentSource(ABC):
    """Base class that every content source must implement."""

    @abstractmethod
    async def list_active(self, content_type: str) -> list[ContentItem]:
        """Return active items of one concrete type, in storage order."""

    @abstractmethod
    async def get_item(self, content_type: str, item_id: str) -> ContentItem | None:
        """Return one item (any status), or None if unknown."""


class PreferenceStore(ABC):
    """Base class that every preference store must implement."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> UserProfile | None:
        """Return the user's onboarding profile, or None."""

    @abstractmethod
    async def get_preferences(self, user_id: str) -> UserPreferences | None:
        """Return the user's learned preferences, or None."""

    @abstractmethod
    async def merge_preferences(
        self,
        user_id: str,
        interests: Mapping[str, float] | None = None,
        skills: Mapping[str, float] | None = None,
    ) -> bool:
        """Add deltas to existing weights.

        Must increment per term atomically; returns False when the user has
        no preferences document.
        """

    @abstractmethod
    async def create_preferences(self, user_id: str) -> bool:
        """Create an empty preferences document; False if one already exists."""
