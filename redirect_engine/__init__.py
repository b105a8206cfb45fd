"""
redirect_engine — Redirect Resolution Engine for tapped NFC/QR cards.

Given a card's profile and the context of a tap (time, visitor location,
client signals), select exactly one destination URL.

Layers
------
core      Rule matchers, rule selectors, client-signal parsing.
policy    The resolver that applies a profile's strategy.
io        Pydantic models for profiles, rules, cards and tap context.
processor Tap entry point wiring store, geolocation, resolver and dispatch.
"""

__version__ = "0.1.0"
ENGINE_VERSION = "v1"
PACKAGE_NAME = "redirect_engine"
