"""
Tap processor — entry point for a physical card scan.

Ties the data store, geolocation, resolver and side-effect dispatch into a
single ``TapProcessor.process_tap`` call that the HTTP layer turns into a
redirect.  The processor only reads card state; tap counting happens
through the dispatched TapEvent.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from redirect_engine.clients.geolocation import UNKNOWN, NullGeolocator
from redirect_engine.core.signals import parse_client_signals
from redirect_engine.enums import TapOutcome
from redirect_engine.errors import (
    CardNotActivatedError,
    CardNotFoundError,
    LookupFailure,
    NoDefaultUrlError,
    NoProfileConfiguredError,
    ProfileValidationError,
)
from redirect_engine.interfaces import DataStore, Geolocator
from redirect_engine.io.schema import (
    CARD_UID_PATTERN,
    Card,
    Profile,
    RawRequestContext,
    TapContext,
    TapEvent,
)
from redirect_engine.policy.resolver import Resolution, resolve_redirect

logger = logging.getLogger(__name__)

_OUTCOME_BY_ERROR = {
    CardNotFoundError: TapOutcome.CARD_NOT_FOUND,
    CardNotActivatedError: TapOutcome.CARD_NOT_ACTIVATED,
    NoProfileConfiguredError: TapOutcome.NO_PROFILE_CONFIGURED,
}


@dataclass(frozen=True)
class TapResult:
    """Outcome of one tap; ``destination_url`` is set only for REDIRECT."""

    outcome: TapOutcome
    card_uid: str
    destination_url: Optional[str] = None
    resolution: Optional[Resolution] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == TapOutcome.REDIRECT


def normalise_card_uid(card_uid: str) -> str:
    return (card_uid or "").strip().upper()


class TapProcessor:
    """Resolve card taps to destination URLs."""

    def __init__(
        self,
        store: DataStore,
        geolocator: Optional[Geolocator] = None,
        dispatch: Optional[Callable[[TapEvent], object]] = None,
    ):
        self.store = store
        self.geolocator = geolocator or NullGeolocator()
        self.dispatch = dispatch

    # ── Steps ────────────────────────────────────────────────────────────

    def load_card(self, card_uid: str) -> Card:
        if not CARD_UID_PATTERN.match(card_uid):
            raise CardNotFoundError("Malformed card identifier", card_uid=card_uid)
        card = self.store.get_card_by_identifier(card_uid)
        if card is None:
            raise CardNotFoundError(card_uid=card_uid)
        if not card.is_activated:
            raise CardNotActivatedError(
                f"Card is {card.status.value}", card_uid=card_uid,
            )
        return card

    def load_profile(self, card: Card) -> Profile:
        if not card.profile_id:
            raise NoProfileConfiguredError(card_uid=card.card_uid)
        try:
            profile = self.store.get_profile(card.profile_id)
        except ProfileValidationError as e:
            logger.error("Card %s points at unusable profile %s: %s", card.card_uid, card.profile_id, e)
            raise NoProfileConfiguredError(card_uid=card.card_uid) from e
        if profile is None:
            logger.warning("Card %s points at missing profile %s", card.card_uid, card.profile_id)
            raise NoProfileConfiguredError(card_uid=card.card_uid)
        return profile

    async def build_context(self, raw: RawRequestContext) -> TapContext:
        """Geolocate the visitor and parse client signals from headers."""
        try:
            location = await self.geolocator.locate(raw.ip)
        except Exception as exc:
            logger.warning("Geolocation raised for %s, treating as unknown: %s", raw.ip, exc)
            location = UNKNOWN
        return TapContext(
            timestamp=raw.timestamp,
            visitor_location=location,
            client_signals=parse_client_signals(raw.headers),
        )

    def emit(self, event: TapEvent) -> None:
        """Hand the event to the dispatcher.  Never raises."""
        if self.dispatch is None:
            return
        try:
            self.dispatch(event)
        except Exception as exc:
            logger.error("Tap event dispatch failed for card %s: %s", event.card_uid, exc, exc_info=True)

    # ── Entry point ──────────────────────────────────────────────────────

    async def process_tap(self, card_uid: str, raw: RawRequestContext) -> TapResult:
        uid = normalise_card_uid(card_uid)

        try:
            card = self.load_card(uid)
        except LookupFailure as e:
            logger.info("Tap on %s rejected: %s", uid, e.code)
            return TapResult(outcome=_OUTCOME_BY_ERROR[type(e)], card_uid=uid, error_code=e.code)

        try:
            profile = self.load_profile(card)
        except NoProfileConfiguredError as e:
            logger.info("Tap on %s has no profile configured", uid)
            return TapResult(outcome=TapOutcome.NO_PROFILE_CONFIGURED, card_uid=uid, error_code=e.code)

        ctx = await self.build_context(raw)

        try:
            resolution = resolve_redirect(profile, ctx)
        except NoDefaultUrlError as e:
            logger.error("Card %s: %s", uid, e)
            return TapResult(outcome=TapOutcome.NO_DEFAULT_URL, card_uid=uid, error_code=e.code)

        self.emit(TapEvent(
            card_uid=uid,
            profile_id=profile.profile_id,
            resolved_url=resolution.url,
            strategy=resolution.strategy,
            matched_rule=resolution.matched_rule,
            source=raw.source,
            ip=raw.ip,
            context=ctx,
        ))

        logger.info(
            "Tap %s -> %s (strategy=%s rule=%s)",
            uid, resolution.url, resolution.strategy.value, resolution.matched_rule,
        )
        return TapResult(
            outcome=TapOutcome.REDIRECT,
            card_uid=uid,
            destination_url=resolution.url,
            resolution=resolution,
        )
