"""Application startup/shutdown lifecycle wiring."""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path
from typing import Callable

from fastapi import FastAPI

from redirect_engine.clients.geolocation import HttpGeolocator, NullGeolocator
from redirect_engine.dispatch import TapEventDispatcher
from redirect_engine.processor import TapProcessor
from redirect_engine.storage import SqliteStore

from .config import Settings
from .context import ServiceContext

logger = logging.getLogger(__name__)


def build_lifespan(settings: Settings) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Create a lifespan context manager bound to provided settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting tap redirect service...")

        store = SqliteStore(Path(settings.DB_PATH))

        if settings.geolocation_enabled:
            geolocator = HttpGeolocator(
                url_template=settings.GEO_LOOKUP_URL,
                timeout=settings.GEO_TIMEOUT_SECONDS,
            )
        else:
            logger.warning("GEO_LOOKUP_URL is empty; every visitor location is unknown")
            geolocator = NullGeolocator()

        dispatcher = TapEventDispatcher(store, sink=store, maxsize=settings.TAP_QUEUE_SIZE)
        dispatcher.start()

        processor = TapProcessor(store, geolocator=geolocator, dispatch=dispatcher.submit)

        ctx = ServiceContext(
            settings=settings,
            store=store,
            geolocator=geolocator,
            dispatcher=dispatcher,
            processor=processor,
        )
        app.state.settings = settings
        app.state.ctx = ctx

        yield

        logger.info("Shutting down tap redirect service...")
        await ctx.close()
        logger.info("Tap redirect service stopped")

    return lifespan
