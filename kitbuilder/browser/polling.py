"""
Deadline-bounded polling shared by the challenge gate and the render wait.

Built on selenium's WebDriverWait: a wall-clock deadline, a fixed poll
frequency, and WebDriverException treated as "not yet".
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.support.ui import WebDriverWait

logger = logging.getLogger(__name__)


class PollTimeout(TimeoutError):
    """Raised by poll_until when the predicate never became true."""

    def __init__(self, description: str, attempts: int, timeout_s: float):
        super().__init__(f"{description} not met after {attempts} checks ({timeout_s:.1f}s)")
        self.description = description
        self.attempts = attempts
        self.timeout_s = timeout_s


def poll_until(
    predicate: Callable[[], Any],
    *,
    interval: float,
    timeout: float,
    check_first: bool = True,
    on_attempt: Optional[Callable[[int], None]] = None,
    description: str = "condition",
    target: Any = None,
) -> int:
    """
    Call predicate every `interval` seconds until it returns a truthy value
    or `timeout` seconds of wall clock have passed.

    Args:
        predicate: Zero-argument callable; WebDriverException counts as False
        interval: Seconds between checks
        timeout: Deadline in seconds
        check_first: Check immediately; otherwise wait one interval first
        on_attempt: Called with the 1-based check number after each failed check
        description: Used in the timeout message
        target: Handed to WebDriverWait as its driver (only used for its repr)

    Returns:
        Number of checks it took

    Raises:
        PollTimeout: If the predicate never held before the deadline
    """
    attempts = 0
    skip = not check_first

    def check(_driver) -> bool:
        nonlocal attempts, skip
        if skip:
            skip = False
            return False
        attempts += 1
        ok = False
        try:
            ok = bool(predicate())
            return ok
        finally:
            if not ok and on_attempt is not None:
                on_attempt(attempts)

    wait = WebDriverWait(
        target,
        timeout,
        poll_frequency=interval,
        ignored_exceptions=(WebDriverException,),
    )
    try:
        wait.until(check)
    except TimeoutException as e:
        raise PollTimeout(description, attempts, timeout) from e
    return attempts
