"""
Test fixtures for the HTTP app.

The app runs its real lifespan against a temporary SQLite file with
geolocation disabled.
"""
import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from redirect_engine.enums import CardStatus
from redirect_engine.io.schema import Card, Profile

LANDING = "https://landing.example/welcome"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DB_PATH=str(tmp_path / "redirects.db"),
        GEO_LOOKUP_URL="",
        LANDING_URL=LANDING,
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        store = app.state.ctx.store
        store.save_profile(Profile(
            profile_id="p-mobile",
            default_url="https://desktop.example",
            strategy="conditional",
            conditional_rules=[{"name": "mobile", "condition": "device", "operator": "equals",
                                "value": "mobile", "url": "https://mobile.example"}],
        ))
        store.save_card(Card(card_uid="ACTIVE0001", status=CardStatus.ACTIVATED, profile_id="p-mobile"))
        store.save_card(Card(card_uid="READY00001", status=CardStatus.READY, profile_id="p-mobile"))
        store.save_card(Card(card_uid="NOPROFILE1", status=CardStatus.ACTIVATED))
        yield c
