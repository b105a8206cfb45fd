"""Shared application context attached to the FastAPI app."""

from __future__ import annotations

from dataclasses import dataclass

from redirect_engine.dispatch import TapEventDispatcher
from redirect_engine.interfaces import Geolocator
from redirect_engine.processor import TapProcessor
from redirect_engine.storage import SqliteStore

from .config import Settings


@dataclass
class ServiceContext:
    """Runtime dependencies kept on ``app.state`` for easy access."""

    settings: Settings
    store: SqliteStore
    geolocator: Geolocator
    dispatcher: TapEventDispatcher
    processor: TapProcessor

    async def close(self) -> None:
        """Flush pending side effects and release external resources."""
        await self.dispatcher.stop(drain=True)
        aclose = getattr(self.geolocator, "aclose", None)
        if aclose is not None:
            await aclose()
        self.store.close()
