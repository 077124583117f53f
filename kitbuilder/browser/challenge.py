"""
Challenge Gate: wait out Cloudflare-style interstitials.

The edge service serves a "Just a moment..." page while it fingerprints the
browser. We only look at the page title: if it matches a known challenge
phrase we recheck once a second for up to a minute, then give the real page
a moment to finish loading.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable

from ..errors import ChallengeTimeout
from .polling import PollTimeout, poll_until

logger = logging.getLogger(__name__)

CHALLENGE_SIGNATURES = ("just a moment", "attention required", "cloudflare")


def is_challenge_title(title: str, signatures: Iterable[str] = CHALLENGE_SIGNATURES) -> bool:
    lowered = (title or "").lower()
    return any(sig in lowered for sig in signatures)


class ChallengeGate:
    """
    Blocks until the current page is not a challenge page.

    Args:
        interval: Seconds between title checks
        max_checks: Wait budget in intervals (deadline is interval * max_checks seconds)
        progress_every: Log a progress line every N checks
        settle: Pause after the challenge clears
        sleep: Sleep function for the settle pause (injectable for tests)
    """

    def __init__(
        self,
        interval: float = 1.0,
        max_checks: int = 60,
        progress_every: int = 5,
        settle: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = interval
        self.max_checks = max_checks
        self.progress_every = progress_every
        self.settle = settle
        self._sleep = sleep

    def _cleared(self, session) -> bool:
        # a WebDriverException here (title unreadable mid-navigation) counts as not cleared
        return not is_challenge_title(session.title())

    def _progress(self, attempt: int) -> None:
        if attempt and attempt % self.progress_every == 0:
            logger.info(
                f"[CHALLENGE] Still waiting for CAPTCHA... "
                f"({attempt * self.interval:.0f} seconds)"
            )

    def wait_until_clear(self, session) -> None:
        """
        Return once the page is usable.

        Raises:
            ChallengeTimeout: If the challenge title never went away
        """
        title = session.title()
        if not is_challenge_title(title):
            return

        logger.warning(f"[CHALLENGE] Cloudflare CAPTCHA detected ('{title}') - waiting for completion...")
        try:
            poll_until(
                lambda: self._cleared(session),
                interval=self.interval,
                timeout=self.interval * self.max_checks,
                check_first=False,
                on_attempt=self._progress,
                description="challenge clearance",
                target=session,
            )
        except PollTimeout as e:
            raise ChallengeTimeout(self.interval * self.max_checks, title) from e

        logger.info("[CHALLENGE] CAPTCHA completed")
        self._sleep(self.settle)
