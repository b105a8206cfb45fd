"""
Rule matchers — one stateless predicate per rule kind.

A matcher answers "does this rule apply to this tap right now?".  Matchers
never raise on a malformed rule (bad regex, unknown timezone, unreadable
time): such a rule simply does not match, and resolution moves on.
"""
from __future__ import annotations

import functools
import logging
import re
from datetime import datetime, timedelta
from typing import Optional, Pattern, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from redirect_engine.enums import Operator
from redirect_engine.io.schema import (
    ConditionalRule,
    GeoRule,
    Rule,
    TapContext,
    TimeRule,
)

logger = logging.getLogger(__name__)


# ── Time ─────────────────────────────────────────────────────────────────────

def parse_hhmm(value: str) -> int:
    """``"9:05"`` / ``"09:05"`` → minute of day.  Raises ValueError."""
    hours, _, minutes = value.partition(":")
    h, m = int(hours), int(minutes)
    if not (0 <= h < 24 and 0 <= m < 60):
        raise ValueError(f"time out of range: {value!r}")
    return h * 60 + m


def js_weekday(dt: datetime) -> int:
    """Day of week with Sunday=0 … Saturday=6."""
    return (dt.weekday() + 1) % 7


def localise(ts: datetime, tz_name: str) -> Optional[datetime]:
    """``ts`` expressed in ``tz_name``; None if the zone is unknown."""
    try:
        return ts.astimezone(ZoneInfo(tz_name))
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        logger.warning("Unknown timezone %r: %s", tz_name, e)
        return None


def match_time_rule(rule: TimeRule, ctx: TapContext) -> bool:
    """
    True iff the tap falls inside the rule's window in the rule's timezone.

    The window is inclusive at both ends.  When ``start_time`` is later than
    ``end_time`` the window wraps past midnight; minutes after midnight then
    belong to the previous day for the ``days_of_week`` check, so a Friday
    22:00–02:00 rule still matches at 01:00 on Saturday.
    """
    if not rule.active:
        return False

    try:
        start = parse_hhmm(rule.start_time)
        end = parse_hhmm(rule.end_time)
    except ValueError as e:
        logger.warning("Time rule %r has unreadable window: %s", rule.name, e)
        return False

    local = localise(ctx.timestamp, rule.timezone)
    if local is None:
        return False

    minute = local.hour * 60 + local.minute
    day = js_weekday(local)

    if start <= end:
        if not start <= minute <= end:
            return False
    else:
        if end < minute < start:
            return False
        if minute <= end:
            day = js_weekday(local - timedelta(days=1))

    if rule.days_of_week and day not in rule.days_of_week:
        return False
    return True


# ── Geo ──────────────────────────────────────────────────────────────────────

def match_geo_rule(rule: GeoRule, ctx: TapContext) -> bool:
    """Every field the rule sets must equal the visitor's; unset is a wildcard."""
    if not rule.active:
        return False

    loc = ctx.visitor_location
    for wanted, actual in (
        (rule.country, loc.country),
        (rule.region, loc.region),
        (rule.city, loc.city),
    ):
        if wanted is not None and wanted != actual:
            return False
    return True


# ── Conditional ──────────────────────────────────────────────────────────────

@functools.lru_cache(maxsize=512)
def _compile(pattern: str) -> Tuple[Optional[Pattern[str]], Optional[str]]:
    try:
        return re.compile(pattern, re.IGNORECASE), None
    except re.error as e:
        return None, str(e)


def match_conditional_rule(rule: ConditionalRule, ctx: TapContext) -> bool:
    if not rule.active:
        return False

    raw = ctx.client_signals.get(rule.condition)
    signal = raw.lower()
    operand = rule.value.lower()

    op = rule.operator
    if op == Operator.EQUALS:
        return signal == operand
    if op == Operator.CONTAINS:
        return operand in signal
    if op == Operator.STARTS_WITH:
        return signal.startswith(operand)
    if op == Operator.ENDS_WITH:
        return signal.endswith(operand)
    if op == Operator.REGEX:
        # Evaluated on the raw signal, not the lower-cased one
        compiled, err = _compile(rule.value)
        if compiled is None:
            logger.warning("Conditional rule %r has invalid regex: %s", rule.name, err)
            return False
        return compiled.search(raw) is not None

    return operand in signal


# ── Dispatch ─────────────────────────────────────────────────────────────────

def match_rule(rule: Rule, ctx: TapContext) -> bool:
    """Apply the matcher for the rule's kind."""
    if isinstance(rule, TimeRule):
        return match_time_rule(rule, ctx)
    if isinstance(rule, GeoRule):
        return match_geo_rule(rule, ctx)
    if isinstance(rule, ConditionalRule):
        return match_conditional_rule(rule, ctx)
    raise TypeError(f"Unsupported rule type: {type(rule).__name__}")
