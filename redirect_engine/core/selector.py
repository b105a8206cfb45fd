"""
Rule selection — pick at most one rule from a single rule list.

Time rules have no priority: the first matching rule in declaration order
wins.  Geo and conditional rules are ordered by priority (higher first);
equal priorities keep declaration order because ``sorted`` is stable.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence, TypeVar

from redirect_engine.core.matcher import match_rule
from redirect_engine.enums import Strategy
from redirect_engine.io.schema import (
    ConditionalRule,
    GeoRule,
    Profile,
    Rule,
    TapContext,
    TimeRule,
)

logger = logging.getLogger(__name__)

PrioritisedRule = TypeVar("PrioritisedRule", GeoRule, ConditionalRule)


def select_time_rule(
    rules: Sequence[TimeRule],
    ctx: TapContext,
) -> Optional[TimeRule]:
    """First matching time rule, or None."""
    for rule in rules:
        if match_rule(rule, ctx):
            return rule
    return None


def select_prioritised_rule(
    rules: Sequence[PrioritisedRule],
    ctx: TapContext,
) -> Optional[PrioritisedRule]:
    """Highest-priority matching rule; ties go to the earlier-declared one."""
    candidates = [r for r in rules if match_rule(r, ctx)]
    if not candidates:
        return None
    candidates = sorted(candidates, key=lambda r: -r.priority)
    return candidates[0]


def select_rule(
    profile: Profile,
    ctx: TapContext,
) -> Optional[Rule]:
    """
    Select the rule for the profile's strategy.

    Only the rule list belonging to ``profile.strategy`` is consulted.
    Returns None for ``static`` and when nothing matches.
    """
    strategy = profile.strategy
    if strategy == Strategy.TIME_BASED:
        selected = select_time_rule(profile.time_rules, ctx)
    elif strategy == Strategy.GEO_BASED:
        selected = select_prioritised_rule(profile.geo_rules, ctx)
    elif strategy == Strategy.CONDITIONAL:
        selected = select_prioritised_rule(profile.conditional_rules, ctx)
    elif strategy == Strategy.STATIC:
        return None
    else:
        raise ValueError(f"Unknown strategy: {strategy!r}")

    logger.debug(
        "profile=%s strategy=%s selected=%s",
        profile.profile_id, strategy.value, selected.name if selected else None,
    )
    return selected
