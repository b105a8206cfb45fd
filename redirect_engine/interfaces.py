"""Collaborator interfaces consulted by the tap processor."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from redirect_engine.io.schema import Card, Profile, TapEvent, VisitorLocation


class DataStore(ABC):
    @abstractmethod
    def get_card_by_identifier(self, card_uid: str) -> Optional[Card]:
        ...

    @abstractmethod
    def get_profile(self, profile_id: str) -> Optional[Profile]:
        ...

    @abstractmethod
    def record_tap(self, card_uid: str, tapped_at: datetime) -> None:
        """Increment the card's tap counter and set its last-tapped time."""
        ...


class Geolocator(ABC):
    @abstractmethod
    async def locate(self, ip: Optional[str]) -> VisitorLocation:
        """Location of ``ip``; an all-None VisitorLocation when unknown."""
        ...


class AnalyticsSink(ABC):
    @abstractmethod
    def record_tap_event(self, event: TapEvent) -> None:
        ...
