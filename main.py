"""CLI entry point for the recommendation engine."""

import argparse
import asyncio
import logging
import sqlite3
import sys
from pathlib import Path
from typing import Any

import yaml

from recengine.core.config import Settings
from recengine.core.db import (
    adjust_item_counter,
    create_preferences,
    get_content_item,
    init_db,
    merge_preference_weights,
    upsert_content_item,
    upsert_profile,
)
from recengine.core.schemas import CONTENT_TYPES, ContentItem, UserPreferences, UserProfile
from recengine.ranking.ranker import RecommendationEngine, export_recommendations_json
from recengine.stores.base import ItemNotFoundError
from recengine.stores.sqlite import SQLiteContentSource, SQLitePreferenceStore

REQUEST_TYPES = [*CONTENT_TYPES, "all"]

# Counter bumped on the item for each engagement type; click-throughs only learn.
_ENGAGEMENT_COUNTERS = {"save": "saves_count", "like": "likes_count"}


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Content recommendation engine - rank items and learn from engagement",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- seed ---
    seed_parser = subparsers.add_parser("seed", help="Load items, profiles and preferences from YAML")
    seed_parser.add_argument("--file", required=True, help="Path to seed YAML file")
    _add_common(seed_parser)

    # --- recommend ---
    rec_parser = subparsers.add_parser("recommend", help="Personalized recommendations for a user")
    rec_parser.add_argument("--user", required=True, help="User ID")
    rec_parser.add_argument("--type", default="all", choices=REQUEST_TYPES, help="Content type")
    rec_parser.add_argument("--limit", type=int, help="Maximum number of items")
    _add_common(rec_parser)

    # --- feed ---
    feed_parser = subparsers.add_parser("feed", help="Shuffled personalized feed across all types")
    feed_parser.add_argument("--user", required=True, help="User ID")
    feed_parser.add_argument("--limit", type=int, help="Maximum number of items")
    _add_common(feed_parser)

    # --- trending ---
    trend_parser = subparsers.add_parser("trending", help="Most engaged content, no personalization")
    trend_parser.add_argument("--type", default="all", choices=REQUEST_TYPES, help="Content type")
    trend_parser.add_argument("--limit", type=int, help="Maximum number of items")
    _add_common(trend_parser)

    # --- similar ---
    sim_parser = subparsers.add_parser("similar", help="Items similar to a reference item")
    sim_parser.add_argument("--type", required=True, choices=list(CONTENT_TYPES), help="Content type")
    sim_parser.add_argument("--id", required=True, dest="item_id", help="Reference item ID")
    sim_parser.add_argument("--limit", type=int, help="Maximum number of items")
    _add_common(sim_parser)

    # --- engage ---
    engage_parser = subparsers.add_parser("engage", help="Record a save, like or click-through")
    engage_parser.add_argument("--user", required=True, help="User ID")
    engage_parser.add_argument("--type", required=True, choices=list(CONTENT_TYPES), help="Content type")
    engage_parser.add_argument("--item-id", required=True, help="Item ID")
    engage_parser.add_argument(
        "--event",
        required=True,
        choices=["save", "like", "click_through"],
        help="Engagement type",
    )
    _add_common(engage_parser)

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_settings(path: str) -> Settings:
    """Load settings, falling back to defaults when the default path is absent."""
    if not Path(path).exists() and path == "config/settings.yaml":
        return Settings()
    return Settings.from_yaml(path)


def seed(conn: sqlite3.Connection, path: str | Path) -> tuple[int, int, int]:
    """Load a seed YAML file into the database.

    Items and profiles are replaced; preference weights are added to any
    existing weights. Returns (items, profiles, preferences) counts.
    """
    path = Path(path)
    if not path.exists():
        msg = f"Seed file not found: {path}"
        raise FileNotFoundError(msg)
    raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}

    items = [ContentItem.model_validate(i) for i in raw.get("items", [])]
    profiles = [UserProfile.model_validate(p) for p in raw.get("profiles", [])]
    preferences = [UserPreferences.model_validate(p) for p in raw.get("preferences", [])]

    for item in items:
        upsert_content_item(conn, item)
    for profile in profiles:
        upsert_profile(conn, profile)
    for prefs in preferences:
        create_preferences(conn, prefs.user_id, prefs.location_data)
        merge_preference_weights(conn, prefs.user_id, prefs.interests, prefs.skills)

    return len(items), len(profiles), len(preferences)


async def run(args: argparse.Namespace, settings: Settings, conn: sqlite3.Connection) -> int:
    """Dispatch a ranking or engagement subcommand. Returns an exit code."""
    engine = RecommendationEngine(
        SQLiteContentSource(conn),
        SQLitePreferenceStore(conn),
        settings,
    )

    if args.command == "recommend":
        items = await engine.get_recommendations(args.user, args.type, args.limit)
    elif args.command == "feed":
        items = await engine.get_personalized_feed(args.user, args.limit)
    elif args.command == "trending":
        items = await engine.get_cold_start_recommendations(args.type, args.limit)
    elif args.command == "similar":
        try:
            items = await engine.get_similar_items(args.type, args.item_id, args.limit)
        except ItemNotFoundError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
    else:
        return await engage(args, engine, conn)

    print(export_recommendations_json(items))
    return 0


async def engage(
    args: argparse.Namespace,
    engine: RecommendationEngine,
    conn: sqlite3.Connection,
) -> int:
    """Bump the item's counter, then feed the event to the learner."""
    counter = _ENGAGEMENT_COUNTERS.get(args.event)
    if counter is not None and not adjust_item_counter(conn, args.type, args.item_id, counter, 1):
        print(f"Error: {args.type} '{args.item_id}' not found", file=sys.stderr)
        return 1

    item = get_content_item(conn, args.type, args.item_id)
    if item is None:
        print(f"Error: {args.type} '{args.item_id}' not found", file=sys.stderr)
        return 1

    await engine.update_preferences_from_engagement(args.user, args.event, item)
    print(f"Recorded {args.event} on {args.type} '{args.item_id}' for '{args.user}'")
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    conn = init_db(settings.database.path)
    try:
        if args.command == "seed":
            try:
                n_items, n_profiles, n_prefs = seed(conn, args.file)
            except (FileNotFoundError, ValueError) as e:
                print(f"Error: {e}", file=sys.stderr)
                sys.exit(1)
            print(f"Seeded {n_items} items, {n_profiles} profiles, {n_prefs} preference documents")
            return

        code = asyncio.run(run(args, settings, conn))
    finally:
        conn.close()
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
