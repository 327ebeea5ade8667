"""SQLite database layer for content items, user profiles and learned preferences."""

import json
import sqlite3
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path

from recengine.core.schemas import (
    COUNTER_FIELDS,
    ContentItem,
    LocationData,
    UserPreferences,
    UserProfile,
)

_CONTENT_TABLE = """
CREATE TABLE IF NOT EXISTS content_items (
    seq             INTEGER PRIMARY KEY AUTOINCREMENT,
    id              TEXT    NOT NULL,
    type            TEXT    NOT NULL,
    title           TEXT    NOT NULL DEFAULT '',
    category        TEXT    NOT NULL DEFAULT '',
    tags_json       TEXT    NOT NULL DEFAULT '[]',
    requirements_json TEXT  NOT NULL DEFAULT '[]',
    location        TEXT    NOT NULL DEFAULT '',
    created_at      TEXT    NOT NULL,
    likes_count     INTEGER NOT NULL DEFAULT 0,
    saves_count     INTEGER NOT NULL DEFAULT 0,
    views           INTEGER NOT NULL DEFAULT 0,
    status          TEXT    NOT NULL DEFAULT 'active',
    UNIQUE(type, id)
);
"""

_PROFILES_TABLE = """
CREATE TABLE IF NOT EXISTS user_profiles (
    user_id         TEXT PRIMARY KEY,
    interests_json  TEXT NOT NULL DEFAULT '[]',
    skills_json     TEXT NOT NULL DEFAULT '[]',
    country         TEXT,
    province        TEXT,
    city            TEXT,
    updated_at      TEXT NOT NULL
);
"""

_PREFERENCES_TABLE = """
CREATE TABLE IF NOT EXISTS user_preferences (
    user_id         TEXT PRIMARY KEY,
    country         TEXT,
    province        TEXT,
    city            TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);
"""

# One row per (user, kind, term) so increments are single-row atomic upserts.
_WEIGHTS_TABLE = """
CREATE TABLE IF NOT EXISTS preference_weights (
    user_id         TEXT NOT NULL,
    kind            TEXT NOT NULL,
    term            TEXT NOT NULL,
    weight          REAL NOT NULL DEFAULT 0.0,
    PRIMARY KEY (user_id, kind, term)
);
"""

_WEIGHT_KINDS = ("interests", "skills")


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_CONTENT_TABLE)
    conn.execute(_PROFILES_TABLE)
    conn.execute(_PREFERENCES_TABLE)
    conn.execute(_WEIGHTS_TABLE)
    conn.commit()
    return conn


# ---------------------------------------------------------------------------
# Content items
# ---------------------------------------------------------------------------


def upsert_content_item(conn: sqlite3.Connection, item: ContentItem) -> bool:
    """Insert or replace a content item keyed by (type, id).

    Returns True if a new row was inserted, False if an existing row was updated.
    """
    exists = conn.execute(
        "SELECT 1 FROM content_items WHERE type = ? AND id = ?",
        (item.type, item.id),
    ).fetchone()
    conn.execute(
        """
        INSERT INTO content_items
            (id, type, title, category, tags_json, requirements_json, location,
             created_at, likes_count, saves_count, views, status)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(type, id) DO UPDATE SET
            title = excluded.title,
            category = excluded.category,
            tags_json = excluded.tags_json,
            requirements_json = excluded.requirements_json,
            location = excluded.location,
            created_at = excluded.created_at,
            likes_count = excluded.likes_count,
            saves_count = excluded.saves_count,
            views = excluded.views,
            status = excluded.status
        """,
        (
            item.id,
            item.type,
            item.title,
            item.category,
            json.dumps(item.tags),
            json.dumps(item.requirements),
            item.location,
            item.created_at.isoformat(),
            item.likes_count,
            item.saves_count,
            item.views,
            item.status,
        ),
    )
    conn.commit()
    return exists is None


def list_active_items(conn: sqlite3.Connection, content_type: str) -> list[ContentItem]:
    """Return active items of one type in insertion order."""
    rows = conn.execute(
        "SELECT * FROM content_items WHERE type = ? AND status = 'active' ORDER BY seq",
        (content_type,),
    ).fetchall()
    return [_row_to_item(r) for r in rows]


def get_content_item(
    conn: sqlite3.Connection,
    content_type: str,
    item_id: str,
) -> ContentItem | None:
    """Return a single item regardless of status, or None."""
    row = conn.execute(
        "SELECT * FROM content_items WHERE type = ? AND id = ?",
        (content_type, item_id),
    ).fetchone()
    return _row_to_item(row) if row is not None else None


def adjust_item_counter(
    conn: sqlite3.Connection,
    content_type: str,
    item_id: str,
    field: str,
    delta: int,
) -> bool:
    """Add delta to an engagement counter, never going below zero.

    Returns True if the item exists.
    """
    if field not in COUNTER_FIELDS:
        msg = f"Unknown counter '{field}'. Expected one of {COUNTER_FIELDS}"
        raise ValueError(msg)
    # field is whitelisted above, so interpolation is safe
    cursor = conn.execute(
        f"UPDATE content_items SET {field} = MAX(0, {field} + ?) WHERE type = ? AND id = ?",
        (delta, content_type, item_id),
    )
    conn.commit()
    return cursor.rowcount > 0


def _row_to_item(row: sqlite3.Row) -> ContentItem:
    return ContentItem(
        id=row["id"],
        type=row["type"],
        title=row["title"],
        category=row["category"],
        tags=json.loads(row["tags_json"]),
        requirements=json.loads(row["requirements_json"]),
        location=row["location"],
        created_at=datetime.fromisoformat(row["created_at"]),
        likes_count=row["likes_count"],
        saves_count=row["saves_count"],
        views=row["views"],
        status=row["status"],
    )


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


def upsert_profile(conn: sqlite3.Connection, profile: UserProfile) -> None:
    """Insert or replace a user's onboarding profile."""
    loc = profile.location_data
    conn.execute(
        """
        INSERT INTO user_profiles
            (user_id, interests_json, skills_json, country, province, city, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            interests_json = excluded.interests_json,
            skills_json = excluded.skills_json,
            country = excluded.country,
            province = excluded.province,
            city = excluded.city,
            updated_at = excluded.updated_at
        """,
        (
            profile.user_id,
            json.dumps(profile.interests),
            json.dumps(profile.skills),
            loc.country,
            loc.province,
            loc.city,
            datetime.now().isoformat(),
        ),
    )
    conn.commit()


def get_profile(conn: sqlite3.Connection, user_id: str) -> UserProfile | None:
    row = conn.execute(
        "SELECT * FROM user_profiles WHERE user_id = ?", (user_id,),
    ).fetchone()
    if row is None:
        return None
    return UserProfile(
        user_id=row["user_id"],
        interests=json.loads(row["interests_json"]),
        skills=json.loads(row["skills_json"]),
        location_data=_row_location(row) or LocationData(),
    )


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


def create_preferences(
    conn: sqlite3.Connection,
    user_id: str,
    location: LocationData | None = None,
) -> bool:
    """Create an empty preferences document if none exists.

    Returns True if a new document was created.
    """
    loc = location or LocationData()
    now = datetime.now().isoformat()
    cursor = conn.execute(
        """
        INSERT OR IGNORE INTO user_preferences
            (user_id, country, province, city, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (user_id, loc.country, loc.province, loc.city, now, now),
    )
    conn.commit()
    return cursor.rowcount > 0


def get_preferences(conn: sqlite3.Connection, user_id: str) -> UserPreferences | None:
    row = conn.execute(
        "SELECT * FROM user_preferences WHERE user_id = ?", (user_id,),
    ).fetchone()
    if row is None:
        return None
    maps: dict[str, dict[str, float]] = {kind: {} for kind in _WEIGHT_KINDS}
    for w in conn.execute(
        "SELECT kind, term, weight FROM preference_weights WHERE user_id = ? ORDER BY rowid",
        (user_id,),
    ).fetchall():
        maps[w["kind"]][w["term"]] = w["weight"]
    return UserPreferences(
        user_id=user_id,
        interests=maps["interests"],
        skills=maps["skills"],
        location_data=_row_location(row),
    )


def merge_preference_weights(
    conn: sqlite3.Connection,
    user_id: str,
    interests: Mapping[str, float] | None = None,
    skills: Mapping[str, float] | None = None,
) -> bool:
    """Add weight deltas to a user's preference maps.

    Each term is a single-row upsert that increments in place, so concurrent
    merges for the same user never overwrite each other. Returns False (and
    writes nothing) when the user has no preferences document.
    """
    exists = conn.execute(
        "SELECT 1 FROM user_preferences WHERE user_id = ?", (user_id,),
    ).fetchone()
    if exists is None:
        return False

    rows = [
        (user_id, kind, term, delta)
        for kind, deltas in (("interests", interests), ("skills", skills))
        for term, delta in (deltas or {}).items()
    ]
    for _, _, term, delta in rows:
        if delta < 0:
            msg = f"preference delta for '{term}' must be >= 0, got {delta}"
            raise ValueError(msg)

    with conn:
        conn.executemany(
            """
            INSERT INTO preference_weights (user_id, kind, term, weight)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, kind, term)
            DO UPDATE SET weight = weight + excluded.weight
            """,
            rows,
        )
        conn.execute(
            "UPDATE user_preferences SET updated_at = ? WHERE user_id = ?",
            (datetime.now().isoformat(), user_id),
        )
    return True


def _row_location(row: sqlite3.Row) -> LocationData | None:
    loc = LocationData(country=row["country"], province=row["province"], city=row["city"])
    return None if loc.is_empty() else loc
