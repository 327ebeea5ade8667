"""SQLite-backed content source and preference store."""

import logging
import sqlite3
from collections.abc import Mapping

from recengine.core import db
from recengine.core.schemas import ContentItem, UserPreferences, UserProfile
from recengine.stores.base import ContentSource, DataAccessError, PreferenceStore

logger = logging.getLogger(__name__)


class SQLiteContentSource(ContentSource):
    """Reads content items from the content_items table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    async def list_active(self, content_type: str) -> list[ContentItem]:
        try:
            items = db.list_active_items(self._conn, content_type)
        except (sqlite3.Error, ValueError) as e:
            msg = f"Failed to list active '{content_type}' items: {e}"
            raise DataAccessError(msg) from e
        logger.debug("Loaded %d active '%s' items", len(items), content_type)
        return items

    async def get_item(self, content_type: str, item_id: str) -> ContentItem | None:
        try:
            return db.get_content_item(self._conn, content_type, item_id)
        except (sqlite3.Error, ValueError) as e:
            msg = f"Failed to load {content_type} '{item_id}': {e}"
            raise DataAccessError(msg) from e


class SQLitePreferenceStore(PreferenceStore):
    """Reads profiles and reads/merges learned preference weights."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    async def get_profile(self, user_id: str) -> UserProfile | None:
        try:
            return db.get_profile(self._conn, user_id)
        except (sqlite3.Error, ValueError) as e:
            msg = f"Failed to load profile for '{user_id}': {e}"
            raise DataAccessError(msg) from e

    async def get_preferences(self, user_id: str) -> UserPreferences | None:
        try:
            return db.get_preferences(self._conn, user_id)
        except (sqlite3.Error, ValueError) as e:
            msg = f"Failed to load preferences for '{user_id}': {e}"
            raise DataAccessError(msg) from e

    async def merge_preferences(
        self,
        user_id: str,
        interests: Mapping[str, float] | None = None,
        skills: Mapping[str, float] | None = None,
    ) -> bool:
        try:
            return db.merge_preference_weights(self._conn, user_id, interests, skills)
        except (sqlite3.Error, ValueError) as e:
            msg = f"Failed to merge preferences for '{user_id}': {e}"
            raise DataAccessError(msg) from e

    async def create_preferences(self, user_id: str) -> bool:
        try:
            return db.create_preferences(self._conn, user_id)
        except (sqlite3.Error, ValueError) as e:
            msg = f"Failed to create preferences for '{user_id}': {e}"
            raise DataAccessError(msg) from e
