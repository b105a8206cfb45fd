"""
Seed the redirect store from a JSON document.

Usage::

    python scripts/seed_store.py --db /files/tapredirect/redirects.db --file seed.json

Document shape::

    {
      "profiles": [{"profile_id": "p1", "default_url": "https://…", "strategy": "geo-based",
                    "geo_rules": [{"name": "US", "country": "US", "url": "https://…"}]}],
      "cards":    [{"card_uid": "ABCD1234", "status": "activated", "profile_id": "p1"}]
    }

Profiles are validated on write; a profile without a default URL is
reported and skipped.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from redirect_engine.errors import ProfileValidationError
from redirect_engine.io.schema import Card, Profile
from redirect_engine.storage import SqliteStore

logger = logging.getLogger(__name__)


def seed(store: SqliteStore, document: dict) -> dict:
    """Write profiles then cards; returns counts of written and skipped items."""
    summary = {"profiles": 0, "cards": 0, "skipped": 0}

    for item in document.get("profiles", []):
        try:
            store.save_profile(Profile.model_validate(item))
            summary["profiles"] += 1
        except (ValidationError, ProfileValidationError) as e:
            logger.error("Skipping profile %s: %s", item.get("profile_id"), e)
            summary["skipped"] += 1

    for item in document.get("cards", []):
        try:
            store.save_card(Card.model_validate(item))
            summary["cards"] += 1
        except ValidationError as e:
            logger.error("Skipping card %s: %s", item.get("card_uid"), e)
            summary["skipped"] += 1

    return summary


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed cards and redirect profiles")
    parser.add_argument("--db", required=True, type=Path, help="SQLite database path")
    parser.add_argument("--file", required=True, type=Path, help="JSON seed document")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    document = json.loads(args.file.read_text(encoding="utf-8"))
    store = SqliteStore(args.db)
    try:
        summary = seed(store, document)
    finally:
        store.close()

    print(f"Seeded {summary['profiles']} profiles, {summary['cards']} cards "
          f"({summary['skipped']} skipped) into {args.db}")
    return 1 if summary["skipped"] else 0


if __name__ == "__main__":
    sys.exit(main())
