"""
Redirect resolution for a single tap.

``resolve_redirect`` is the authoritative answer to "where does this tap
go?".  Exactly one strategy is evaluated per tap; the profile's default URL
catches everything the rules do not.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from redirect_engine.core.selector import select_rule
from redirect_engine.enums import Strategy
from redirect_engine.errors import NoDefaultUrlError
from redirect_engine.io.schema import Profile, TapContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    """Destination chosen for a tap."""

    url: str
    strategy: Strategy
    matched_rule: Optional[str] = None
    fallback: bool = True


def resolve_redirect(profile: Profile, ctx: TapContext) -> Resolution:
    """
    Resolve ``profile`` against ``ctx``.

    Raises
    ------
    NoDefaultUrlError
        The profile has no default URL.  Malformed rules never raise; they
        are skipped by the matchers.
    """
    default_url = (profile.default_url or "").strip()
    if not default_url:
        logger.error("Profile %s has no default URL", profile.profile_id)
        raise NoDefaultUrlError(profile.profile_id)

    if profile.strategy == Strategy.STATIC:
        return Resolution(url=default_url, strategy=Strategy.STATIC)

    rule = select_rule(profile, ctx)
    if rule is None:
        logger.debug(
            "profile=%s no %s rule matched, using default",
            profile.profile_id, profile.strategy.value,
        )
        return Resolution(url=default_url, strategy=profile.strategy)

    return Resolution(url=rule.url, strategy=profile.strategy, matched_rule=rule.name, fallback=False)
