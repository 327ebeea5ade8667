"""Integration test: recommendation engine over SQLite and in-memory stores."""

import random
import sqlite3
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from recengine.core.config import ScoringConfig, Settings
from recengine.core.db import (
    create_preferences,
    get_preferences,
    init_db,
    merge_preference_weights,
    upsert_content_item,
    upsert_profile,
)
from recengine.core.schemas import ContentItem, LocationData, Recommendation, UserProfile
from recengine.ranking.cold_start import rank_by_popularity
from recengine.ranking.ranker import RecommendationEngine, export_recommendations_json
from recengine.stores.base import DataAccessError, ItemNotFoundError
from recengine.stores.memory import InMemoryContentSource, InMemoryPreferenceStore
from recengine.stores.sqlite import SQLiteContentSource, SQLitePreferenceStore

NOW = datetime(2026, 10, 19, 12, 0)


def _item(
    item_id: str,
    content_type: str = "job",
    *,
    tags: list[str] | None = None,
    requirements: list[str] | None = None,
    location: str = "",
    category: str = "",
    likes: int = 0,
    saves: int = 0,
    views: int = 0,
    age_days: float = 2.0,
    status: str = "active",
) -> ContentItem:
    return ContentItem(
        id=item_id,
        type=content_type,  # type: ignore[arg-type]
        tags=tags or [],
        requirements=requirements or [],
        location=location,
        category=category,
        likes_count=likes,
        saves_count=saves,
        views=views,
        created_at=NOW - timedelta(days=age_days),
        status=status,
    )


def _catalog() -> list[ContentItem]:
    return [
        _item("job-py", tags=["tech", "data"], requirements=["python", "sql"],
              location="Toronto, Ontario", views=20),
        _item("job-art", tags=["arts"], requirements=["photoshop"], location="Paris", views=300),
        _item("job-old", tags=["tech"], requirements=["python"], views=5, age_days=200),
        _item("job-closed", tags=["tech"], views=10_000, status="closed"),
        _item("evt-career", "event", tags=["career", "tech"], category="fair",
              location="Online", likes=30, views=400),
        _item("opp-fellow", "opportunity", tags=["leadership"], category="fellowship",
              likes=3, saves=4),
        _item("res-guide", "resource", tags=["data"], views=1),
    ]


def _settings(**scoring: float) -> Settings:
    config = ScoringConfig(**scoring) if scoring else ScoringConfig(explore_weight=0.0, recency_weight=0.15)
    return Settings(scoring=config)


@pytest.fixture
def db(tmp_path) -> sqlite3.Connection:  # type: ignore[no-untyped-def]
    conn = init_db(tmp_path / "test.db")
    for item in _catalog():
        upsert_content_item(conn, item)
    upsert_profile(conn, UserProfile(
        user_id="alice",
        interests=["tech"],
        skills=["python"],
        location_data=LocationData(country="Canada", province="Ontario", city="Toronto"),
    ))
    return conn


def _engine(conn: sqlite3.Connection, settings: Settings | None = None, seed: int = 0) -> RecommendationEngine:
    return RecommendationEngine(
        SQLiteContentSource(conn),
        SQLitePreferenceStore(conn),
        settings or _settings(),
        rng=random.Random(seed),
        clock=lambda: NOW,
    )


class TestRecommendations:
    async def test_personalized_order(self, db: sqlite3.Connection) -> None:
        recs = await _engine(db).get_recommendations("alice", "job", limit=10)
        assert [r.id for r in recs] == ["job-py", "job-old", "job-art"]

    async def test_inactive_items_excluded(self, db: sqlite3.Connection) -> None:
        recs = await _engine(db).get_recommendations("alice", "all", limit=100)
        assert "job-closed" not in {r.id for r in recs}
        assert len(recs) == 6

    async def test_limit(self, db: sqlite3.Connection) -> None:
        recs = await _engine(db).get_recommendations("alice", "all", limit=2)
        assert len(recs) == 2

    async def test_limit_clamped_to_max(self, db: sqlite3.Connection) -> None:
        settings = _settings()
        settings.ranking.max_limit = 3
        recs = await _engine(db, settings).get_recommendations("alice", "all", limit=50)
        assert len(recs) == 3

    async def test_zero_limit_returns_nothing(self, db: sqlite3.Connection) -> None:
        assert await _engine(db).get_recommendations("alice", "job", limit=0) == []

    async def test_negative_limit_returns_nothing(self, db: sqlite3.Connection) -> None:
        assert await _engine(db).get_recommendations("alice", "all", limit=-3) == []

    async def test_no_score_fields_and_content_type(self, db: sqlite3.Connection) -> None:
        recs = await _engine(db, Settings()).get_recommendations("alice", "all", limit=10)
        for r in recs:
            assert isinstance(r, Recommendation)
            dumped = r.model_dump()
            assert "score" not in dumped
            assert "breakdown" not in dumped
            assert r.content_type == r.type

    async def test_explore_is_seeded(self, db: sqlite3.Connection) -> None:
        first = await _engine(db, Settings(), seed=11).get_recommendations("alice", "all")
        second = await _engine(db, Settings(), seed=11).get_recommendations("alice", "all")
        assert [r.id for r in first] == [r.id for r in second]

    async def test_learned_preferences_change_ranking(self, db: sqlite3.Connection) -> None:
        create_preferences(db, "alice")
        merge_preference_weights(db, "alice", interests={"arts": 5.0}, skills={"photoshop": 1.0})
        recs = await _engine(db).get_recommendations("alice", "job", limit=10)
        assert recs[0].id == "job-art"

    async def test_unknown_type_raises(self, db: sqlite3.Connection) -> None:
        with pytest.raises(ValueError):
            await _engine(db).get_recommendations("alice", "podcast")


class TestColdStart:
    async def test_user_without_data_gets_cold_start(self, db: sqlite3.Connection) -> None:
        engine = _engine(db)
        recs = await engine.get_recommendations("nobody", "job", limit=10)
        cold = await engine.get_cold_start_recommendations("job", limit=10)
        assert [r.id for r in recs] == [r.id for r in cold]
        assert [r.id for r in recs] == ["job-art", "job-py", "job-old"]

    async def test_matches_popularity_ranking(self, db: sqlite3.Connection) -> None:
        active = [i for i in _catalog() if i.status == "active"]
        expected = [i.id for i in rank_by_popularity(active, 20)]
        recs = await _engine(db).get_cold_start_recommendations("all")
        assert [r.id for r in recs] == expected

    async def test_preferences_alone_skip_cold_start(self, db: sqlite3.Connection) -> None:
        create_preferences(db, "bob")
        merge_preference_weights(db, "bob", interests={"tech": 1.0})
        recs = await _engine(db).get_recommendations("bob", "job", limit=10)
        assert recs[0].id == "job-py"

    async def test_ties_follow_type_then_insertion_order(self) -> None:
        source = InMemoryContentSource([
            _item("j1", "job", views=5),
            _item("r1", "resource", views=5),
            _item("o1", "opportunity", views=5),
            _item("j2", "job", views=5),
        ])
        engine = RecommendationEngine(source, InMemoryPreferenceStore())
        recs = await engine.get_cold_start_recommendations("all")
        assert [r.id for r in recs] == ["o1", "j1", "j2", "r1"]

    async def test_annotated(self, db: sqlite3.Connection) -> None:
        recs = await _engine(db).get_cold_start_recommendations("event")
        assert [(r.id, r.content_type) for r in recs] == [("evt-career", "event")]

    async def test_zero_limit_returns_nothing(self, db: sqlite3.Connection) -> None:
        engine = _engine(db)
        assert await engine.get_cold_start_recommendations("job", limit=0) == []
        assert await engine.get_recommendations("nobody", "job", limit=0) == []


class TestFeed:
    async def test_feed_same_set_as_recommendations(self, db: sqlite3.Connection) -> None:
        engine = _engine(db)
        ranked = await engine.get_recommendations("alice", "all", limit=4)
        feed = await _engine(db).get_personalized_feed("alice", limit=4)
        assert {r.id for r in feed} == {r.id for r in ranked}

    async def test_feed_default_limit(self, db: sqlite3.Connection) -> None:
        feed = await _engine(db).get_personalized_feed("alice")
        assert len(feed) == 6


class TestSimilar:
    async def test_similar_by_tag(self, db: sqlite3.Connection) -> None:
        recs = await _engine(db).get_similar_items("job", "job-py")
        # Newest first; closed items never appear.
        assert [r.id for r in recs] == ["job-old"]

    async def test_similar_by_category(self) -> None:
        source = InMemoryContentSource([
            _item("a", "event", category="fair", age_days=3),
            _item("b", "event", category="Fair", age_days=1),
            _item("c", "event", category="talk"),
        ])
        engine = RecommendationEngine(source, InMemoryPreferenceStore())
        recs = await engine.get_similar_items("event", "a")
        assert [r.id for r in recs] == ["b"]

    async def test_missing_reference(self, db: sqlite3.Connection) -> None:
        with pytest.raises(ItemNotFoundError):
            await _engine(db).get_similar_items("job", "nope")

    async def test_inactive_reference(self, db: sqlite3.Connection) -> None:
        with pytest.raises(ItemNotFoundError):
            await _engine(db).get_similar_items("job", "job-closed")

    async def test_all_rejected(self, db: sqlite3.Connection) -> None:
        with pytest.raises(ValueError):
            await _engine(db).get_similar_items("all", "job-py")


class TestLearningLoop:
    async def test_like_twice_accumulates(self, db: sqlite3.Connection) -> None:
        create_preferences(db, "alice")
        engine = _engine(db)
        item = _item("x", tags=["design"])
        await engine.update_preferences_from_engagement("alice", "like", item)
        await engine.update_preferences_from_engagement("alice", "like", item)
        prefs = get_preferences(db, "alice")
        assert prefs is not None
        assert prefs.interests["design"] == 2.0

    async def test_no_preferences_document(self, db: sqlite3.Connection) -> None:
        await _engine(db).update_preferences_from_engagement("alice", "save", _item("x", tags=["tech"]))
        assert get_preferences(db, "alice") is None

    async def test_unknown_engagement_ignored(self, db: sqlite3.Connection) -> None:
        create_preferences(db, "alice")
        await _engine(db).update_preferences_from_engagement("alice", "share", _item("x", tags=["tech"]))
        prefs = get_preferences(db, "alice")
        assert prefs is not None
        assert prefs.interests == {}

    async def test_invalid_engagement_logs_reason(
        self, db: sqlite3.Connection, caplog: pytest.LogCaptureFixture,
    ) -> None:
        await _engine(db).update_preferences_from_engagement("alice", "share", _item("x"))
        assert "Ignoring invalid share engagement from 'alice'" in caplog.text
        assert "engagement_type" in caplog.text

    async def test_recommendation_can_be_fed_back(self, db: sqlite3.Connection) -> None:
        create_preferences(db, "alice")
        engine = _engine(db)
        recs = await engine.get_recommendations("alice", "event", limit=1)
        await engine.update_preferences_from_engagement("alice", "click_through", recs[0])
        prefs = get_preferences(db, "alice")
        assert prefs is not None
        assert prefs.interests == {"career": 0.5, "tech": 0.5}


class TestStoreFailures:
    def _failing_engine(self) -> RecommendationEngine:
        content = AsyncMock()
        content.list_active.side_effect = DataAccessError("content down")
        content.get_item.side_effect = DataAccessError("content down")
        prefs = AsyncMock()
        prefs.get_profile.return_value = UserProfile(user_id="u1")
        prefs.get_preferences.return_value = None
        return RecommendationEngine(content, prefs, rng=random.Random(0))

    async def test_recommendations_degrade_to_empty(self) -> None:
        assert await self._failing_engine().get_recommendations("u1") == []

    async def test_cold_start_degrades_to_empty(self) -> None:
        assert await self._failing_engine().get_cold_start_recommendations() == []

    async def test_similar_degrades_to_empty(self) -> None:
        assert await self._failing_engine().get_similar_items("job", "1") == []

    async def test_preference_store_failure(self) -> None:
        prefs = AsyncMock()
        prefs.get_profile.side_effect = DataAccessError("prefs down")
        engine = RecommendationEngine(InMemoryContentSource(_catalog()), prefs)
        assert await engine.get_recommendations("u1") == []

    async def test_undecodable_item_row_degrades_to_empty(self, db: sqlite3.Connection) -> None:
        db.execute("UPDATE content_items SET tags_json = 'not json' WHERE id = 'job-py'")
        db.commit()
        engine = _engine(db)
        assert await engine.get_recommendations("alice", "job") == []
        assert await engine.get_cold_start_recommendations("all") == []

    async def test_bad_timestamp_degrades_to_empty(self, db: sqlite3.Connection) -> None:
        db.execute("UPDATE content_items SET created_at = 'yesterday' WHERE id = 'job-art'")
        db.commit()
        assert await _engine(db).get_similar_items("job", "job-py") == []

    async def test_undecodable_profile_degrades_to_empty(self, db: sqlite3.Connection) -> None:
        db.execute("UPDATE user_profiles SET interests_json = '{broken' WHERE user_id = 'alice'")
        db.commit()
        assert await _engine(db).get_recommendations("alice", "job") == []


class TestExport:
    async def test_json(self, db: sqlite3.Connection) -> None:
        recs = await _engine(db).get_cold_start_recommendations("resource")
        out = export_recommendations_json(recs)
        assert '"content_type": "resource"' in out
        assert '"score"' not in out
