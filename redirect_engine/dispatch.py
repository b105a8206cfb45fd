"""
Fire-and-forget dispatch of tap side effects.

A resolved tap enqueues one TapEvent; a background task records the tap
counter and the analytics event.  Nothing here can delay or fail the
redirect: a full queue drops the event and recording errors are logged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .interfaces import AnalyticsSink, DataStore
from .io.schema import TapEvent

logger = logging.getLogger(__name__)


class TapEventDispatcher:
    """Bounded queue drained by a single background worker."""

    def __init__(self, store: DataStore, sink: Optional[AnalyticsSink] = None, maxsize: int = 1000):
        self.store = store
        self.sink = sink
        self.queue: asyncio.Queue[TapEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if not self.running:
            self._worker = asyncio.create_task(self._run(), name="tap-event-dispatcher")
            logger.info("Tap event dispatcher started (maxsize=%s)", self.queue.maxsize)

    def submit(self, event: TapEvent) -> bool:
        """Enqueue without waiting.  Returns False if the event was dropped."""
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Tap event queue full, dropping event for card %s (dropped=%s)",
                event.card_uid, self.dropped,
            )
            return False

    async def record(self, event: TapEvent) -> None:
        """Run both side effects for one event; each failure is isolated."""
        try:
            await asyncio.to_thread(self.store.record_tap, event.card_uid, event.context.timestamp)
        except Exception as exc:
            logger.error("Failed to record tap for card %s: %s", event.card_uid, exc, exc_info=True)

        if self.sink is None:
            return
        try:
            await asyncio.to_thread(self.sink.record_tap_event, event)
        except Exception as exc:
            logger.error("Failed to record tap event for card %s: %s", event.card_uid, exc, exc_info=True)

    async def _run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await self.record(event)
            finally:
                self.queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued event has been recorded."""
        await self.queue.join()

    async def stop(self, drain: bool = True) -> None:
        if drain and self.running:
            await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
            logger.info("Tap event dispatcher stopped")
