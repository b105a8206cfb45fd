"""Exceptions raised by the redirect engine.

Each error carries a stable ``code`` that is returned to HTTP callers.
"""

from __future__ import annotations

from typing import Optional


class RedirectEngineError(Exception):
    """Base class for all engine errors."""

    code = "RedirectEngineError"

    def __init__(self, message: str = "", *, card_uid: Optional[str] = None):
        super().__init__(message or self.code)
        self.card_uid = card_uid


class NoDefaultUrlError(RedirectEngineError):
    """Profile has no default URL: a data-integrity violation."""

    code = "NoDefaultUrl"

    def __init__(self, profile_id: Optional[str] = None):
        super().__init__(f"Profile {profile_id!r} has no default URL")
        self.profile_id = profile_id


class LookupFailure(RedirectEngineError):
    """Card or profile could not be used for a tap. Terminal, never retried."""


class CardNotFoundError(LookupFailure):
    code = "CardNotFound"


class CardNotActivatedError(LookupFailure):
    code = "CardNotActivated"


class NoProfileConfiguredError(LookupFailure):
    code = "NoProfileConfigured"


class ProfileValidationError(RedirectEngineError):
    """Profile rejected on write."""

    code = "InvalidProfile"
