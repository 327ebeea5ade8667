"""Tests for the SQLite and in-memory store adapters."""

import sqlite3
from unittest.mock import patch

import pytest

from recengine.core.db import create_preferences, init_db, upsert_content_item, upsert_profile
from recengine.core.schemas import ContentItem, UserPreferences, UserProfile
from recengine.stores.base import DataAccessError
from recengine.stores.memory import InMemoryContentSource, InMemoryPreferenceStore
from recengine.stores.sqlite import SQLiteContentSource, SQLitePreferenceStore


@pytest.fixture()
def db(tmp_path) -> sqlite3.Connection:  # type: ignore[no-untyped-def]
    return init_db(tmp_path / "test.db")


class TestSQLiteContentSource:
    async def test_list_active(self, db: sqlite3.Connection) -> None:
        upsert_content_item(db, ContentItem(id="1", type="job"))
        upsert_content_item(db, ContentItem(id="2", type="job", status="inactive"))
        items = await SQLiteContentSource(db).list_active("job")
        assert [i.id for i in items] == ["1"]

    async def test_get_item(self, db: sqlite3.Connection) -> None:
        upsert_content_item(db, ContentItem(id="1", type="event"))
        source = SQLiteContentSource(db)
        assert (await source.get_item("event", "1")) is not None
        assert (await source.get_item("event", "2")) is None

    async def test_sqlite_error_wrapped(self, db: sqlite3.Connection) -> None:
        db.close()
        with pytest.raises(DataAccessError):
            await SQLiteContentSource(db).list_active("job")

    async def test_undecodable_row_wrapped(self, db: sqlite3.Connection) -> None:
        upsert_content_item(db, ContentItem(id="1", type="job"))
        db.execute("UPDATE content_items SET requirements_json = 'nope'")
        db.commit()
        source = SQLiteContentSource(db)
        with pytest.raises(DataAccessError, match="Failed to list active 'job' items"):
            await source.list_active("job")
        with pytest.raises(DataAccessError, match="Failed to load job '1'"):
            await source.get_item("job", "1")


class TestSQLitePreferenceStore:
    async def test_profile_and_preferences(self, db: sqlite3.Connection) -> None:
        upsert_profile(db, UserProfile(user_id="u1", interests=["tech"]))
        create_preferences(db, "u1")
        store = SQLitePreferenceStore(db)
        profile = await store.get_profile("u1")
        prefs = await store.get_preferences("u1")
        assert profile is not None and profile.interests == ["tech"]
        assert prefs is not None and prefs.interests == {}

    async def test_create_and_merge(self, db: sqlite3.Connection) -> None:
        store = SQLitePreferenceStore(db)
        assert await store.merge_preferences("u1", interests={"tech": 1.0}) is False
        assert await store.create_preferences("u1") is True
        assert await store.merge_preferences("u1", interests={"tech": 1.0}) is True
        assert await store.merge_preferences("u1", interests={"tech": 1.0}) is True
        prefs = await store.get_preferences("u1")
        assert prefs is not None
        assert prefs.interests == {"tech": 2.0}

    async def test_sqlite_error_wrapped(self, db: sqlite3.Connection) -> None:
        store = SQLitePreferenceStore(db)
        with patch(
            "recengine.core.db.get_preferences",
            side_effect=sqlite3.OperationalError("database is locked"),
        ):
            with pytest.raises(DataAccessError, match="database is locked"):
                await store.get_preferences("u1")

    async def test_undecodable_profile_wrapped(self, db: sqlite3.Connection) -> None:
        upsert_profile(db, UserProfile(user_id="u1", skills=["python"]))
        db.execute("UPDATE user_profiles SET skills_json = '[python'")
        db.commit()
        with pytest.raises(DataAccessError, match="Failed to load profile for 'u1'"):
            await SQLitePreferenceStore(db).get_profile("u1")


class TestInMemoryContentSource:
    async def test_list_active_in_insertion_order(self) -> None:
        source = InMemoryContentSource([
            ContentItem(id="b", type="job"),
            ContentItem(id="a", type="job"),
            ContentItem(id="c", type="job", status="archived"),
            ContentItem(id="d", type="event"),
        ])
        assert [i.id for i in await source.list_active("job")] == ["b", "a"]

    async def test_get_item(self) -> None:
        source = InMemoryContentSource([ContentItem(id="a", type="job")])
        assert (await source.get_item("job", "a")) is not None
        assert (await source.get_item("event", "a")) is None


class TestInMemoryPreferenceStore:
    async def test_merge_requires_document(self) -> None:
        store = InMemoryPreferenceStore()
        assert await store.merge_preferences("u1", interests={"tech": 1.0}) is False

    async def test_merge_accumulates(self) -> None:
        store = InMemoryPreferenceStore()
        store.add_preferences(UserPreferences(user_id="u1", skills={"sql": 1.0}))
        await store.merge_preferences("u1", skills={"sql": 1.0, "go": 1.0})
        prefs = await store.get_preferences("u1")
        assert prefs is not None
        assert prefs.skills == {"sql": 2.0, "go": 1.0}

    async def test_returns_copies(self) -> None:
        store = InMemoryPreferenceStore()
        store.add_preferences(UserPreferences(user_id="u1"))
        prefs = await store.get_preferences("u1")
        assert prefs is not None
        prefs.interests["tech"] = 99.0
        fresh = await store.get_preferences("u1")
        assert fresh is not None
        assert fresh.interests == {}

    async def test_create_once(self) -> None:
        store = InMemoryPreferenceStore()
        assert await store.create_preferences("u1") is True
        assert await store.create_preferences("u1") is False
