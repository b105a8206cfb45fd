"""
Frozen vocabulary for profiles, rules, cards and tap outcomes.

String values are the ones stored in profile records and returned over
HTTP, so renaming a member is a data migration, not a refactor.
"""

from __future__ import annotations

from enum import Enum


# ═══════════════════════════════════════════════════════════════════════════════
# Profile strategy
# ═══════════════════════════════════════════════════════════════════════════════

class Strategy(str, Enum):
    """Which rule set a profile consults on a tap."""

    STATIC      = "static"
    TIME_BASED  = "time-based"
    GEO_BASED   = "geo-based"
    CONDITIONAL = "conditional"


# ═══════════════════════════════════════════════════════════════════════════════
# Conditional rules
# ═══════════════════════════════════════════════════════════════════════════════

class Condition(str, Enum):
    """Client signal a conditional rule inspects."""

    DEVICE     = "device"
    BROWSER    = "browser"
    REFERRER   = "referrer"
    USER_AGENT = "user-agent"


class Operator(str, Enum):
    """Comparison applied between the client signal and the rule value."""

    EQUALS      = "equals"
    CONTAINS    = "contains"
    STARTS_WITH = "starts-with"
    ENDS_WITH   = "ends-with"
    REGEX       = "regex"


# ═══════════════════════════════════════════════════════════════════════════════
# Cards
# ═══════════════════════════════════════════════════════════════════════════════

class CardStatus(str, Enum):
    """Card lifecycle: unassigned → ready → activated → suspended."""

    UNASSIGNED = "unassigned"
    READY      = "ready"
    ACTIVATED  = "activated"
    SUSPENDED  = "suspended"


class CardType(str, Enum):
    NFC    = "nfc"
    QR     = "qr"
    HYBRID = "hybrid"


class TapSource(str, Enum):
    """How the card was scanned."""

    NFC = "nfc"
    QR  = "qr"


# ═══════════════════════════════════════════════════════════════════════════════
# Tap outcomes
# ═══════════════════════════════════════════════════════════════════════════════

class TapOutcome(str, Enum):
    """Terminal state of a processed tap."""

    REDIRECT              = "redirect"
    CARD_NOT_FOUND        = "card-not-found"
    CARD_NOT_ACTIVATED    = "card-not-activated"
    NO_PROFILE_CONFIGURED = "no-profile-configured"
    NO_DEFAULT_URL        = "no-default-url"
