"""
KitBuilder error taxonomy.

Every failure raised by the acquisition pipeline derives from KitBuilderError
so the builders can catch them at the category and sample boundaries without
also swallowing programming errors.
"""

from __future__ import annotations

from typing import Optional


class KitBuilderError(Exception):
    """Base class for all kit-building failures."""


class ConfigError(KitBuilderError):
    """Config file missing, unreadable or invalid."""


class NavigationError(KitBuilderError):
    """The browser could not load the requested page."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"navigation to {url} failed: {reason}")
        self.url = url
        self.reason = reason


class ChallengeTimeout(KitBuilderError, TimeoutError):
    """A challenge page was still showing when the wait budget ran out."""

    def __init__(self, waited_s: float, title: Optional[str] = None):
        super().__init__(f"timed out waiting for CAPTCHA to complete after {waited_s:.0f}s")
        self.waited_s = waited_s
        self.title = title


class RenderTimeout(KitBuilderError, TimeoutError):
    """The page never signalled that client-side rendering finished."""


class CatalogParseError(KitBuilderError):
    """The embedded catalog was missing, malformed or had the wrong shape."""


class InterceptTimeout(KitBuilderError, TimeoutError):
    """No audio payload was captured before the handoff timed out."""

    def __init__(self, timeout_s: float, outstanding: int):
        super().__init__(
            f"timed out after {timeout_s:.1f}s waiting for MP3 body "
            f"(tracked {outstanding} requests)"
        )
        self.timeout_s = timeout_s
        self.outstanding = outstanding


class PayloadTooSmall(KitBuilderError):
    """The captured body is too small to be real audio."""

    def __init__(self, size: int, minimum: int):
        super().__init__(f"downloaded MP3 seems too small ({size} bytes, minimum {minimum})")
        self.size = size
        self.minimum = minimum


class PayloadWriteError(KitBuilderError):
    """The captured payload could not be written to disk."""


class AuthError(KitBuilderError):
    """Freesound OAuth flow did not produce an access token."""


class FreesoundError(KitBuilderError):
    """Freesound API request failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
