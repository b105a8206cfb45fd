"""Tests for redirect_engine.core.matcher: one predicate per rule kind."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from redirect_engine.core.matcher import (
    js_weekday,
    match_conditional_rule,
    match_geo_rule,
    match_rule,
    match_time_rule,
    parse_hhmm,
)
from redirect_engine.io.schema import ConditionalRule, GeoRule, TimeRule


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def time_rule(start="09:00", end="17:00", days=(), tz="UTC", active=True) -> TimeRule:
    return TimeRule(
        name="window", start_time=start, end_time=end, days_of_week=days,
        url="https://t.example", timezone=tz, active=active,
    )


def cond_rule(condition, operator, value, active=True) -> ConditionalRule:
    return ConditionalRule(
        name=f"{condition}-{operator}", condition=condition, operator=operator,
        value=value, url="https://c.example", active=active,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


class TestHelpers:
    def test_parse_hhmm(self):
        assert parse_hhmm("00:00") == 0
        assert parse_hhmm("09:05") == 545
        assert parse_hhmm("9:05") == 545
        assert parse_hhmm("23:59") == 1439

    def test_parse_hhmm_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_hhmm("24:00")
        with pytest.raises(ValueError):
            parse_hhmm("noon")

    def test_sunday_is_zero(self):
        assert js_weekday(utc(2025, 1, 19)) == 0   # Sunday
        assert js_weekday(utc(2025, 1, 15)) == 3   # Wednesday
        assert js_weekday(utc(2025, 1, 18)) == 6   # Saturday


# ═══════════════════════════════════════════════════════════════════════════════
# Time rules
# ═══════════════════════════════════════════════════════════════════════════════


class TestTimeRule:
    """Inclusive windows, day filters, timezone localisation."""

    def test_inside_window(self, make_context):
        assert match_time_rule(time_rule(), make_context(utc(2025, 1, 15, 12, 30)))

    def test_boundaries_inclusive(self, make_context):
        rule = time_rule()
        assert match_time_rule(rule, make_context(utc(2025, 1, 15, 9, 0)))
        assert match_time_rule(rule, make_context(utc(2025, 1, 15, 17, 0, 59)))
        assert not match_time_rule(rule, make_context(utc(2025, 1, 15, 8, 59)))
        assert not match_time_rule(rule, make_context(utc(2025, 1, 15, 17, 1)))

    def test_single_digit_hour(self, make_context):
        rule = time_rule(start="9:00", end="10:00")
        assert match_time_rule(rule, make_context(utc(2025, 1, 15, 9, 30)))
        assert not match_time_rule(rule, make_context(utc(2025, 1, 15, 11, 0)))

    def test_inactive_never_matches(self, make_context):
        assert not match_time_rule(time_rule(active=False), make_context(utc(2025, 1, 15, 12, 0)))

    def test_empty_days_matches_every_day(self, make_context):
        rule = time_rule(days=())
        for day in range(12, 19):   # Sunday 12th … Saturday 18th
            assert match_time_rule(rule, make_context(utc(2025, 1, day, 10, 0)))

    def test_day_filter(self, make_context):
        weekdays = time_rule(days=(1, 2, 3, 4, 5))
        assert match_time_rule(weekdays, make_context(utc(2025, 1, 15, 10, 0)))      # Wed
        assert not match_time_rule(weekdays, make_context(utc(2025, 1, 18, 10, 0)))  # Sat
        assert not match_time_rule(weekdays, make_context(utc(2025, 1, 19, 10, 0)))  # Sun

    def test_localised_to_rule_timezone(self, make_context):
        rule = time_rule(tz="America/New_York")
        # 15:00 UTC = 10:00 EST
        assert match_time_rule(rule, make_context(utc(2025, 1, 15, 15, 0)))
        # 10:00 UTC = 05:00 EST
        assert not match_time_rule(rule, make_context(utc(2025, 1, 15, 10, 0)))

    def test_day_computed_in_rule_timezone(self, make_context):
        # Saturday 03:00 UTC is Friday 22:00 in New York
        rule = time_rule(start="21:00", end="23:00", days=(5,), tz="America/New_York")
        assert match_time_rule(rule, make_context(utc(2025, 1, 18, 3, 0)))

    def test_unknown_timezone_does_not_match(self, make_context):
        rule = time_rule(tz="Mars/Olympus_Mons")
        assert not match_time_rule(rule, make_context(utc(2025, 1, 15, 12, 0)))


class TestOvernightWindow:
    """22:00–02:00 wraps past midnight; the early-morning part belongs to the previous day."""

    def test_before_midnight(self, make_context):
        assert match_time_rule(time_rule("22:00", "02:00"), make_context(utc(2025, 1, 15, 23, 30)))

    def test_after_midnight(self, make_context):
        assert match_time_rule(time_rule("22:00", "02:00"), make_context(utc(2025, 1, 16, 1, 0)))

    def test_boundaries(self, make_context):
        rule = time_rule("22:00", "02:00")
        assert match_time_rule(rule, make_context(utc(2025, 1, 15, 22, 0)))
        assert match_time_rule(rule, make_context(utc(2025, 1, 16, 2, 0)))
        assert not match_time_rule(rule, make_context(utc(2025, 1, 16, 2, 1)))
        assert not match_time_rule(rule, make_context(utc(2025, 1, 15, 21, 59)))

    def test_midday_outside(self, make_context):
        assert not match_time_rule(time_rule("22:00", "02:00"), make_context(utc(2025, 1, 15, 12, 0)))

    def test_days_apply_to_opening_day(self, make_context):
        friday_night = time_rule("22:00", "02:00", days=(5,))
        assert match_time_rule(friday_night, make_context(utc(2025, 1, 17, 23, 0)))     # Fri 23:00
        assert match_time_rule(friday_night, make_context(utc(2025, 1, 18, 1, 0)))      # Sat 01:00
        assert not match_time_rule(friday_night, make_context(utc(2025, 1, 18, 23, 0))) # Sat 23:00
        assert not match_time_rule(friday_night, make_context(utc(2025, 1, 17, 1, 0)))  # Fri 01:00

    def test_equal_start_end_is_one_minute(self, make_context):
        rule = time_rule("12:00", "12:00")
        assert match_time_rule(rule, make_context(utc(2025, 1, 15, 12, 0, 30)))
        assert not match_time_rule(rule, make_context(utc(2025, 1, 15, 12, 1)))


# ═══════════════════════════════════════════════════════════════════════════════
# Geo rules
# ═══════════════════════════════════════════════════════════════════════════════


class TestGeoRule:
    def test_country_only(self, make_context):
        rule = GeoRule(name="US", country="US", url="https://us.example")
        assert match_geo_rule(rule, make_context(country="US", region="CA"))
        assert not match_geo_rule(rule, make_context(country="CA"))

    def test_all_set_fields_must_match(self, make_context):
        rule = GeoRule(name="SF", country="US", region="CA", city="San Francisco",
                       url="https://sf.example")
        assert match_geo_rule(rule, make_context(country="US", region="CA", city="San Francisco"))
        assert not match_geo_rule(rule, make_context(country="US", region="CA", city="Los Angeles"))

    def test_case_sensitive(self, make_context):
        rule = GeoRule(name="Paris", city="Paris", url="https://fr.example")
        assert not match_geo_rule(rule, make_context(city="paris"))

    def test_catch_all(self, make_context):
        rule = GeoRule(name="anywhere", url="https://any.example")
        assert match_geo_rule(rule, make_context())
        assert match_geo_rule(rule, make_context(country="JP"))

    def test_unknown_location_fails_any_set_field(self, make_context):
        rule = GeoRule(name="US", country="US", url="https://us.example")
        assert not match_geo_rule(rule, make_context())

    def test_empty_string_is_not_a_wildcard(self, make_context):
        rule = GeoRule(name="blank region", region="", url="https://x.example")
        assert not match_geo_rule(rule, make_context(region="CA"))
        assert match_geo_rule(rule, make_context(region=""))

    def test_inactive(self, make_context):
        rule = GeoRule(name="US", country="US", url="https://us.example", active=False)
        assert not match_geo_rule(rule, make_context(country="US"))

    def test_country_upper_cased_on_input(self):
        assert GeoRule(name="us", country="us", url="https://us.example").country == "US"


# ═══════════════════════════════════════════════════════════════════════════════
# Conditional rules
# ═══════════════════════════════════════════════════════════════════════════════


class TestConditionalRule:
    @pytest.mark.parametrize("operator, value, signal, expected", [
        ("equals", "mobile", "Mobile", True),
        ("equals", "mobile", "mobile-ish", False),
        ("contains", "iphone", "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)", True),
        ("starts-with", "mozilla", "Mozilla/5.0", True),
        ("starts-with", "chrome", "Mozilla/5.0 Chrome", False),
        ("ends-with", "safari/604.1", "Mobile/15E148 Safari/604.1", True),
    ])
    def test_string_operators(self, make_context, operator, value, signal, expected):
        rule = cond_rule("user-agent", operator, value)
        assert match_conditional_rule(rule, make_context(user_agent=signal)) is expected

    def test_regex_is_case_insensitive(self, make_context):
        rule = cond_rule("referrer", "regex", r"^https://(www\.)?LinkedIn\.com/")
        assert match_conditional_rule(rule, make_context(referrer="https://www.linkedin.com/in/x"))

    def test_regex_runs_on_raw_signal(self, make_context):
        rule = cond_rule("user-agent", "regex", r"CriOS/\d+")
        assert match_conditional_rule(rule, make_context(user_agent="Mozilla/5.0 CriOS/120.0"))

    def test_malformed_regex_never_matches(self, make_context):
        rule = cond_rule("user-agent", "regex", r"([unclosed")
        assert match_conditional_rule(rule, make_context(user_agent="([unclosed")) is False

    def test_missing_signal_is_empty_string(self, make_context):
        assert match_conditional_rule(cond_rule("referrer", "equals", ""), make_context())
        assert not match_conditional_rule(cond_rule("referrer", "contains", "google"), make_context())

    def test_inactive(self, make_context):
        rule = cond_rule("device", "equals", "mobile", active=False)
        assert not match_conditional_rule(rule, make_context(device="mobile"))

    def test_default_operator_is_contains(self):
        rule = ConditionalRule(name="c", condition="browser", value="fire", url="https://f.example")
        assert rule.operator.value == "contains"

    def test_condition_lower_cased(self):
        rule = ConditionalRule(name="c", condition="Device", value="x", url="https://f.example")
        assert rule.condition.value == "device"


class TestMatchRuleDispatch:
    def test_dispatches_by_kind(self, make_context):
        ctx = make_context(utc(2025, 1, 15, 10, 0), country="US", device="mobile")
        assert match_rule(time_rule(), ctx)
        assert match_rule(GeoRule(name="US", country="US", url="https://us.example"), ctx)
        assert match_rule(cond_rule("device", "equals", "mobile"), ctx)

    def test_unknown_type_raises(self, ctx):
        with pytest.raises(TypeError):
            match_rule(object(), ctx)  # type: ignore[arg-type]
