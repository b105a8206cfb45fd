"""
Client-signal extraction from request headers.

Device and browser are best-effort classifications of the User-Agent
string.  Order matters in ``_BROWSER_MARKERS``: Edge, Opera and Samsung
Internet all advertise "Chrome", and Chrome advertises "Safari".
"""
from __future__ import annotations

import ipaddress
import re
from typing import Mapping, Optional, Tuple

from redirect_engine.io.schema import ClientSignals

_BOT_RE = re.compile(r"bot|crawl|spider|slurp|facebookexternalhit|preview", re.IGNORECASE)
_TABLET_RE = re.compile(r"ipad|tablet|kindle|silk|playbook|(android(?!.*mobile))", re.IGNORECASE)
_MOBILE_RE = re.compile(r"mobi|iphone|ipod|android|blackberry|windows phone|opera mini", re.IGNORECASE)

_BROWSER_MARKERS: Tuple[Tuple[str, re.Pattern], ...] = (
    ("edge", re.compile(r"edg(e|a|ios)?/", re.IGNORECASE)),
    ("opera", re.compile(r"opr/|opera", re.IGNORECASE)),
    ("samsung", re.compile(r"samsungbrowser/", re.IGNORECASE)),
    ("firefox", re.compile(r"firefox/|fxios/", re.IGNORECASE)),
    ("chrome", re.compile(r"chrome/|crios/|chromium/", re.IGNORECASE)),
    ("safari", re.compile(r"safari/", re.IGNORECASE)),
    ("ie", re.compile(r"msie |trident/", re.IGNORECASE)),
)


def classify_device(user_agent: str) -> str:
    """``mobile`` | ``tablet`` | ``desktop`` | ``bot``; empty for no UA."""
    if not user_agent:
        return ""
    if _BOT_RE.search(user_agent):
        return "bot"
    if _TABLET_RE.search(user_agent):
        return "tablet"
    if _MOBILE_RE.search(user_agent):
        return "mobile"
    return "desktop"


def classify_browser(user_agent: str) -> str:
    if not user_agent:
        return ""
    for name, marker in _BROWSER_MARKERS:
        if marker.search(user_agent):
            return name
    return "other"


def parse_client_signals(headers: Mapping[str, str]) -> ClientSignals:
    """Build ClientSignals from lower-cased header names."""
    ua = headers.get("user-agent") or ""
    referrer = headers.get("referer") or headers.get("referrer")
    return ClientSignals(
        device=classify_device(ua),
        browser=classify_browser(ua),
        referrer=referrer,
        user_agent=ua or None,
    )


def client_ip(
    peer: Optional[str],
    headers: Mapping[str, str],
    trust_proxy: bool = False,
) -> Optional[str]:
    """
    Address of the visitor.

    Forwarding headers are only read when ``trust_proxy`` is set.
    """
    if trust_proxy:
        forwarded = headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    return peer


def is_public_ip(ip: Optional[str]) -> bool:
    """False for missing, malformed, private, loopback and reserved addresses."""
    if not ip:
        return False
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return addr.is_global
