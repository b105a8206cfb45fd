"""
Schema — Pydantic models for redirect profiles, cards and tap context.

Every model is frozen: the resolver reads immutable snapshots and never
writes back into a profile.  Rule lists are tuples whose order is the
declaration order, which is also the tie-break of last resort.

Unset optional fields are ``None``.  An empty string is a real value and
never acts as a wildcard.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Annotated, Dict, Literal, Optional, Tuple, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from redirect_engine.enums import (
    CardStatus,
    CardType,
    Condition,
    Operator,
    Strategy,
    TapSource,
)
from redirect_engine.errors import ProfileValidationError

URL_PATTERN = re.compile(r"^https?://.+$", re.IGNORECASE)
HHMM_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
CARD_UID_PATTERN = re.compile(r"^[A-Z0-9]{8,16}$")


def _check_url(v: str) -> str:
    v = v.strip()
    if not URL_PATTERN.match(v):
        raise ValueError("URL must be a valid HTTP/HTTPS URL")
    return v


RedirectUrl = Annotated[str, AfterValidator(_check_url)]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ── Rules ────────────────────────────────────────────────────────────────────

class TimeRule(BaseModel):
    """Redirect during a daily time window, evaluated in ``timezone``."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["time"] = "time"
    name: str = Field(..., max_length=100)
    start_time: str = Field(..., pattern=HHMM_PATTERN)
    end_time: str = Field(..., pattern=HHMM_PATTERN)
    days_of_week: Tuple[Annotated[int, Field(ge=0, le=6)], ...] = Field(
        default=(),
        description="0=Sunday … 6=Saturday; empty means every day",
    )
    url: RedirectUrl
    active: bool = True
    timezone: str = "UTC"


class GeoRule(BaseModel):
    """Redirect visitors from a country / region / city."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["geo"] = "geo"
    name: str = Field(..., max_length=100)
    country: Optional[str] = Field(None, description="ISO-3166 alpha-2")
    region: Optional[str] = None
    city: Optional[str] = None
    url: RedirectUrl
    active: bool = True
    priority: int = Field(1, ge=1)

    @field_validator("country", mode="before")
    @classmethod
    def normalise_country(cls, v):
        if v is None:
            return v
        v = str(v).strip().upper()
        if not re.fullmatch(r"[A-Z]{2}", v):
            raise ValueError("Country must be a 2-letter ISO country code")
        return v


class ConditionalRule(BaseModel):
    """Redirect on a client signal (device, browser, referrer, user agent)."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["conditional"] = "conditional"
    name: str = Field(..., max_length=100)
    condition: Condition
    value: str
    operator: Operator = Operator.CONTAINS
    url: RedirectUrl
    active: bool = True
    priority: int = Field(1, ge=1)

    @field_validator("condition", mode="before")
    @classmethod
    def lower_condition(cls, v):
        return v.lower() if isinstance(v, str) else v


Rule = Annotated[Union[TimeRule, GeoRule, ConditionalRule], Field(discriminator="kind")]


# ── Profile ──────────────────────────────────────────────────────────────────

class Profile(BaseModel):
    """Redirect configuration: one default URL plus per-strategy rule sets."""
    model_config = ConfigDict(frozen=True)

    profile_id: str
    name: str = ""
    default_url: Optional[str] = None
    strategy: Strategy = Strategy.STATIC
    time_rules: Tuple[TimeRule, ...] = ()
    geo_rules: Tuple[GeoRule, ...] = ()
    conditional_rules: Tuple[ConditionalRule, ...] = ()

    @property
    def rule_count(self) -> int:
        return len(self.time_rules) + len(self.geo_rules) + len(self.conditional_rules)

    def validate_for_write(self) -> "Profile":
        """Reject a profile that could not serve as a terminal fallback."""
        if not self.default_url or not URL_PATTERN.match(self.default_url.strip()):
            raise ProfileValidationError(
                f"Profile {self.profile_id!r}: default_url must be an absolute HTTP(S) URL"
            )
        return self


# ── Tap context ──────────────────────────────────────────────────────────────

class VisitorLocation(BaseModel):
    """Where the tap came from.  All ``None`` means unknown."""
    model_config = ConfigDict(frozen=True)

    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None

    @property
    def known(self) -> bool:
        return any(v is not None for v in (self.country, self.region, self.city))


class ClientSignals(BaseModel):
    """Device/browser signals derived from request headers."""
    model_config = ConfigDict(frozen=True)

    device: Optional[str] = None
    browser: Optional[str] = None
    referrer: Optional[str] = None
    user_agent: Optional[str] = None

    def get(self, condition: Condition) -> str:
        """Signal value for ``condition``; missing reads as empty string."""
        field = condition.value.replace("-", "_")
        return getattr(self, field, None) or ""


class TapContext(BaseModel):
    """Ephemeral snapshot of one card scan.  Never persisted by the engine."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=_utc_now)
    visitor_location: VisitorLocation = Field(default_factory=VisitorLocation)
    client_signals: ClientSignals = Field(default_factory=ClientSignals)

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class RawRequestContext(BaseModel):
    """What the HTTP layer knows about a scan before any enrichment."""
    model_config = ConfigDict(frozen=True)

    ip: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utc_now)
    source: TapSource = TapSource.NFC

    @field_validator("headers", mode="before")
    @classmethod
    def lower_header_names(cls, v):
        return {str(k).lower(): str(val) for k, val in dict(v or {}).items()}

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


# ── Card ─────────────────────────────────────────────────────────────────────

class Card(BaseModel):
    """Physical card as seen by the tap path.  State is owned by the store."""
    model_config = ConfigDict(frozen=True)

    card_uid: str
    status: CardStatus = CardStatus.UNASSIGNED
    profile_id: Optional[str] = None
    owner_id: Optional[str] = None
    nickname: Optional[str] = Field(None, max_length=50)
    card_type: CardType = CardType.NFC
    tap_count: int = Field(0, ge=0)
    last_tapped: Optional[datetime] = None

    @field_validator("card_uid", mode="before")
    @classmethod
    def normalise_uid(cls, v):
        v = str(v).strip().upper()
        if not CARD_UID_PATTERN.match(v):
            raise ValueError("Card UID must be 8-16 alphanumeric characters")
        return v

    @property
    def is_activated(self) -> bool:
        return self.status == CardStatus.ACTIVATED


# ── Side-effect record ───────────────────────────────────────────────────────

class TapEvent(BaseModel):
    """Handed to the dispatcher after a tap resolved to a destination."""
    model_config = ConfigDict(frozen=True)

    card_uid: str
    profile_id: str
    resolved_url: str
    strategy: Strategy
    matched_rule: Optional[str] = None
    source: TapSource = TapSource.NFC
    ip: Optional[str] = None
    context: TapContext
