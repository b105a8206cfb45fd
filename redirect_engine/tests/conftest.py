"""
Test fixtures for redirect_engine.

Provides profile/context builders and populated stores.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from redirect_engine.enums import CardStatus
from redirect_engine.io.schema import (
    Card,
    ClientSignals,
    Profile,
    TapContext,
    VisitorLocation,
)
from redirect_engine.storage import InMemoryStore


# ── Fixed instants (2025-01-15 is a Wednesday) ──────────────────────────────

WED_10_00 = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)
SAT_10_00 = datetime(2025, 1, 18, 10, 0, tzinfo=timezone.utc)

DEFAULT_URL = "https://default.example"


def _make_context(
    ts: datetime = WED_10_00,
    country=None,
    region=None,
    city=None,
    **signals,
) -> TapContext:
    return TapContext(
        timestamp=ts,
        visitor_location=VisitorLocation(country=country, region=region, city=city),
        client_signals=ClientSignals(**signals),
    )


def _make_profile(strategy="static", default_url=DEFAULT_URL, **rules) -> Profile:
    return Profile(
        profile_id="p-test",
        name="Test profile",
        default_url=default_url,
        strategy=strategy,
        **rules,
    )


@pytest.fixture
def make_context():
    """Factory: TapContext at a given instant, location and client signals."""
    return _make_context


@pytest.fixture
def make_profile():
    """Factory: Profile with the given strategy and rule lists."""
    return _make_profile


@pytest.fixture
def ctx() -> TapContext:
    return _make_context()


@pytest.fixture
def store() -> InMemoryStore:
    """Store with one card per lifecycle state plus an activated card without a profile."""
    s = InMemoryStore()
    s.save_profile(_make_profile(
        strategy="geo-based",
        geo_rules=[
            {"name": "US", "country": "US", "priority": 5, "url": "https://us.example"},
            {"name": "California", "country": "US", "region": "CA", "priority": 10,
             "url": "https://ca.example"},
        ],
    ))
    s.save_card(Card(card_uid="ACTIVE0001", status=CardStatus.ACTIVATED, profile_id="p-test"))
    s.save_card(Card(card_uid="READY00001", status=CardStatus.READY, profile_id="p-test"))
    s.save_card(Card(card_uid="SUSPEND001", status=CardStatus.SUSPENDED, profile_id="p-test"))
    s.save_card(Card(card_uid="NOPROFILE1", status=CardStatus.ACTIVATED))
    s.save_card(Card(card_uid="DANGLING01", status=CardStatus.ACTIVATED, profile_id="gone"))
    return s
