"""Storage module for cards, redirect profiles and recorded taps."""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ProfileValidationError
from .interfaces import AnalyticsSink, DataStore
from .io.schema import (
    Card,
    ConditionalRule,
    GeoRule,
    Profile,
    TapEvent,
    TimeRule,
)

logger = logging.getLogger(__name__)

RuleT = TypeVar("RuleT", bound=BaseModel)

RULE_LISTS = {
    "time_rules": TimeRule,
    "geo_rules": GeoRule,
    "conditional_rules": ConditionalRule,
}


def canonical_json(obj) -> str:
    """Canonical JSON: sorted keys, no whitespace."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)


def _load_rules(model: Type[RuleT], items: list, profile_id: str) -> List[RuleT]:
    """Validate stored rules one by one; a broken rule is dropped, not fatal."""
    rules: List[RuleT] = []
    if not isinstance(items, list):
        logger.warning("Skipping %s list in profile %s: not a list", model.__name__, profile_id)
        return rules
    for i, item in enumerate(items):
        try:
            rules.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "Skipping malformed %s #%d in profile %s: %s",
                model.__name__, i, profile_id, e.errors()[:1],
            )
    return rules


def profile_from_record(record: Dict) -> Profile:
    """Build a Profile from a stored record whose rules may be partly invalid."""
    profile_id = str(record["profile_id"])
    fields = {
        "profile_id": profile_id,
        "name": record.get("name") or "",
        "default_url": record.get("default_url"),
        "strategy": record.get("strategy") or "static",
    }
    for key, model in RULE_LISTS.items():
        fields[key] = tuple(_load_rules(model, record.get(key) or [], profile_id))
    try:
        return Profile.model_validate(fields)
    except ValidationError as e:
        logger.error("Stored profile %s is invalid: %s", profile_id, e.errors()[:1])
        raise ProfileValidationError(f"Stored profile {profile_id!r} is invalid") from e


class SqliteStore(DataStore, AnalyticsSink):
    """SQLite-backed card/profile store with thread-safe operations."""

    def __init__(self, db_path: Path):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        conn = getattr(self._local, "conn", None)
        with self._connections_lock:
            if conn is None or conn not in self._connections:
                conn = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=False
                )
                conn.row_factory = sqlite3.Row
                self._connections.append(conn)
                self._local.conn = conn
        return conn

    @contextmanager
    def _cursor(self):
        """Context manager for database cursor with auto-commit."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def _init_db(self):
        """Initialize database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._cursor() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    profile_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL DEFAULT '',
                    default_url TEXT,
                    strategy TEXT NOT NULL DEFAULT 'static',
                    rules_json TEXT NOT NULL DEFAULT '{}',
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cards (
                    card_uid TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    profile_id TEXT,
                    owner_id TEXT,
                    nickname TEXT,
                    card_type TEXT NOT NULL DEFAULT 'nfc',
                    tap_count INTEGER NOT NULL DEFAULT 0,
                    last_tapped TEXT,
                    FOREIGN KEY (profile_id) REFERENCES profiles(profile_id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS tap_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    card_uid TEXT NOT NULL,
                    profile_id TEXT NOT NULL,
                    resolved_url TEXT NOT NULL,
                    strategy TEXT NOT NULL,
                    matched_rule TEXT,
                    source TEXT NOT NULL,
                    ip TEXT,
                    tapped_at TEXT NOT NULL,
                    context_json TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_tap_events_card ON tap_events(card_uid, tapped_at)
            """)

    def check_connection(self) -> bool:
        try:
            with self._cursor() as cursor:
                cursor.execute("SELECT 1")
            return True
        except sqlite3.Error:
            return False

    # ── Cards ────────────────────────────────────────────────────────────

    def save_card(self, card: Card) -> Card:
        with self._cursor() as cursor:
            cursor.execute("""
                INSERT INTO cards (card_uid, status, profile_id, owner_id, nickname,
                                   card_type, tap_count, last_tapped)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(card_uid) DO UPDATE SET
                    status = excluded.status,
                    profile_id = excluded.profile_id,
                    owner_id = excluded.owner_id,
                    nickname = excluded.nickname,
                    card_type = excluded.card_type
            """, (
                card.card_uid,
                card.status.value,
                card.profile_id,
                card.owner_id,
                card.nickname,
                card.card_type.value,
                card.tap_count,
                card.last_tapped.isoformat() if card.last_tapped else None,
            ))
        return card

    def get_card_by_identifier(self, card_uid: str) -> Optional[Card]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM cards WHERE card_uid = ?", (card_uid.upper(),))
            row = cursor.fetchone()
        if not row:
            return None
        return Card(
            card_uid=row["card_uid"],
            status=row["status"],
            profile_id=row["profile_id"],
            owner_id=row["owner_id"],
            nickname=row["nickname"],
            card_type=row["card_type"],
            tap_count=row["tap_count"],
            last_tapped=datetime.fromisoformat(row["last_tapped"]) if row["last_tapped"] else None,
        )

    def record_tap(self, card_uid: str, tapped_at: datetime) -> None:
        with self._cursor() as cursor:
            cursor.execute("""
                UPDATE cards SET tap_count = tap_count + 1, last_tapped = ?
                WHERE card_uid = ?
            """, (tapped_at.isoformat(), card_uid))

    # ── Profiles ─────────────────────────────────────────────────────────

    def save_profile(self, profile: Profile) -> Profile:
        """Insert or replace a profile.  Profiles without a default URL are rejected."""
        profile.validate_for_write()
        rules = {
            key: [r.model_dump(mode="json") for r in getattr(profile, key)]
            for key in RULE_LISTS
        }
        with self._cursor() as cursor:
            cursor.execute("""
                INSERT OR REPLACE INTO profiles
                    (profile_id, name, default_url, strategy, rules_json, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                profile.profile_id,
                profile.name,
                profile.default_url,
                profile.strategy.value,
                canonical_json(rules),
                datetime.now(timezone.utc).isoformat(),
            ))
        return profile

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM profiles WHERE profile_id = ?", (profile_id,))
            row = cursor.fetchone()
        if not row:
            return None
        try:
            rules = json.loads(row["rules_json"] or "{}")
        except json.JSONDecodeError as e:
            logger.error("Profile %s has unreadable rules: %s", profile_id, e)
            rules = {}
        if not isinstance(rules, dict):
            logger.error("Profile %s rules are not a JSON object, ignoring them", profile_id)
            rules = {}
        return profile_from_record({
            "profile_id": row["profile_id"],
            "name": row["name"],
            "default_url": row["default_url"],
            "strategy": row["strategy"],
            **{key: rules.get(key) for key in RULE_LISTS},
        })

    # ── Tap events ───────────────────────────────────────────────────────

    def record_tap_event(self, event: TapEvent) -> None:
        with self._cursor() as cursor:
            cursor.execute("""
                INSERT INTO tap_events (card_uid, profile_id, resolved_url, strategy,
                                        matched_rule, source, ip, tapped_at, context_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                event.card_uid,
                event.profile_id,
                event.resolved_url,
                event.strategy.value,
                event.matched_rule,
                event.source.value,
                event.ip,
                event.context.timestamp.isoformat(),
                canonical_json(event.context.model_dump(mode="json")),
            ))

    def list_tap_events(self, card_uid: Optional[str] = None, limit: int = 50) -> List[TapEvent]:
        query = "SELECT * FROM tap_events"
        params: list = []
        if card_uid:
            query += " WHERE card_uid = ?"
            params.append(card_uid.upper())
        query += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with self._cursor() as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()

        return [
            TapEvent(
                card_uid=row["card_uid"],
                profile_id=row["profile_id"],
                resolved_url=row["resolved_url"],
                strategy=row["strategy"],
                matched_rule=row["matched_rule"],
                source=row["source"],
                ip=row["ip"],
                context=json.loads(row["context_json"]),
            )
            for row in rows
        ]

    def close(self) -> None:
        """Close every connection opened so far, including worker threads'."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local.conn = None


class InMemoryStore(DataStore, AnalyticsSink):
    """Dict-backed store for tests and local runs."""

    def __init__(self):
        self._lock = threading.Lock()
        self.cards: Dict[str, Card] = {}
        self.profiles: Dict[str, Profile] = {}
        self.events: List[TapEvent] = []

    def check_connection(self) -> bool:
        return True

    def save_card(self, card: Card) -> Card:
        with self._lock:
            self.cards[card.card_uid] = card
        return card

    def save_profile(self, profile: Profile) -> Profile:
        profile.validate_for_write()
        with self._lock:
            self.profiles[profile.profile_id] = profile
        return profile

    def get_card_by_identifier(self, card_uid: str) -> Optional[Card]:
        return self.cards.get(card_uid.upper())

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        return self.profiles.get(profile_id)

    def record_tap(self, card_uid: str, tapped_at: datetime) -> None:
        with self._lock:
            card = self.cards.get(card_uid)
            if card is None:
                return
            self.cards[card_uid] = card.model_copy(update={
                "tap_count": card.tap_count + 1,
                "last_tapped": tapped_at,
            })

    def record_tap_event(self, event: TapEvent) -> None:
        with self._lock:
            self.events.append(event)

    def list_tap_events(self, card_uid: Optional[str] = None, limit: int = 50) -> List[TapEvent]:
        events = [e for e in reversed(self.events) if card_uid is None or e.card_uid == card_uid.upper()]
        return events[:limit]

    def close(self) -> None:
        pass
