"""
Browser Session: one Chrome context per category

A Session wraps a Selenium Chrome driver configured to look as little like
automation as we can manage:
- automation switches and the AutomationControlled blink feature disabled
- a desktop Chrome user agent
- an optional alternate Chrome binary (GOOGLE_CHROME_PATH)
- persisted cookies (cookies.json) restored before the first navigation
- a stealth script re-injected on every DOMContentLoaded, since each
  navigation throws away whatever the previous page had patched

DevTools events come from ChromeDriver's performance log and are published
through a NetworkEventStream owned by the session. Closing the session
stops the stream, which invalidates every subscription tied to it.
"""

from __future__ import annotations

import base64
import json
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from selenium import webdriver
from selenium.common.exceptions import NoSuchElementException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.by import By

from ..errors import CatalogParseError, NavigationError
from .events import DomContentEventFired, NetworkEventStream

logger = logging.getLogger(__name__)

BACKGROUND_JOIN_S = 5.0

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

STEALTH_JS = """
(() => {
  Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
  Object.defineProperty(navigator, 'languages', {get: () => ['en-US', 'en']});
  Object.defineProperty(navigator, 'plugins', {get: () => [1, 2, 3, 4, 5]});
  window.chrome = window.chrome || {runtime: {}};
  const originalQuery = window.navigator.permissions && window.navigator.permissions.query;
  if (originalQuery) {
    window.navigator.permissions.query = (parameters) => (
      parameters.name === 'notifications'
        ? Promise.resolve({state: Notification.permission})
        : originalQuery(parameters)
    );
  }
})();
"""


@dataclass(frozen=True)
class BrowserProfile:
    """
    How to launch the browser for a session.

    Attributes:
        user_agent: User-Agent string presented to the site
        executable_path: Alternate Chrome/Chromium binary, if any
        headless: Run without a window (challenge pages pass less often)
        cookie_file: JSON array of cookies to restore; missing file is fine
        event_poll_interval: Seconds between performance-log drains
    """
    user_agent: str = DEFAULT_USER_AGENT
    executable_path: Optional[str] = None
    headless: bool = False
    cookie_file: Optional[str] = "cookies.json"
    event_poll_interval: float = 0.1


def make_driver(profile: BrowserProfile) -> "webdriver.Chrome":
    """
    Create a Chrome WebDriver with the anti-automation profile and
    DevTools network/page events routed to the performance log.

    Args:
        profile: BrowserProfile describing the launch

    Returns:
        Configured Chrome WebDriver instance
    """
    opts = Options()
    if profile.headless:
        opts.add_argument("--headless=new")
    opts.add_argument("--no-first-run")
    opts.add_argument("--no-default-browser-check")
    opts.add_argument("--disable-blink-features=AutomationControlled")
    opts.add_argument(f"--user-agent={profile.user_agent}")
    opts.add_argument("--window-size=1920,1080")
    opts.add_experimental_option("excludeSwitches", ["enable-automation"])
    opts.add_experimental_option("useAutomationExtension", False)

    if profile.executable_path:
        opts.binary_location = profile.executable_path

    opts.set_capability("goog:loggingPrefs", {"performance": "ALL"})
    opts.set_capability(
        "goog:perfLoggingPrefs",
        {"enableNetwork": True, "enablePage": True},
    )

    return webdriver.Chrome(options=opts)


def load_cookies(path: Optional[str]) -> List[Dict[str, Any]]:
    """
    Read a persisted cookie file.

    Expected format: a JSON array of objects with name, value, domain, path,
    httpOnly and secure (the shape DevTools exports).

    Returns:
        List of cookie dicts; empty if the file is missing or unreadable
    """
    if not path:
        return []

    cookie_path = Path(path)
    if not cookie_path.exists():
        logger.info(f"[SESSION] No cookie file at {cookie_path}, continuing unauthenticated")
        return []

    try:
        data = json.loads(cookie_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"[SESSION] Could not load cookies from {cookie_path}: {e}")
        return []

    if not isinstance(data, list):
        logger.warning(f"[SESSION] Cookie file {cookie_path} is not a JSON array, ignoring")
        return []

    return [c for c in data if isinstance(c, dict) and c.get("name")]


def _cookie_params(cookie: Dict[str, Any]) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "name": cookie["name"],
        "value": cookie.get("value", ""),
        "path": cookie.get("path") or "/",
        "httpOnly": bool(cookie.get("httpOnly", cookie.get("http_only", False))),
        "secure": bool(cookie.get("secure", False)),
    }
    if cookie.get("domain"):
        params["domain"] = cookie["domain"]
    return params


class Session:
    """
    One browser context and its event stream.

    Owned by whoever created it; must be closed exactly once (extra calls
    to close() are no-ops).
    """

    def __init__(self, driver: Any, profile: Optional[BrowserProfile] = None):
        self.profile = profile or BrowserProfile()
        self.driver = driver
        self.events = NetworkEventStream(driver, poll_interval=self.profile.event_poll_interval)
        self.cookies_applied = 0
        self._network_enabled = False
        self._closed = False
        self._close_lock = threading.Lock()
        self._stealth_sub = None
        self._background: List[threading.Thread] = []

    @classmethod
    def create(
        cls,
        profile: BrowserProfile,
        driver_factory: Callable[[BrowserProfile], Any] = make_driver,
    ) -> "Session":
        """
        Launch a browser and prepare it for scraping.

        Args:
            profile: Launch profile
            driver_factory: Builds the WebDriver (swap out in tests)

        Returns:
            Ready Session with cookies restored and the stealth hook registered
        """
        logger.info(
            f"[SESSION] Launching browser (headless={profile.headless}, "
            f"binary={profile.executable_path or 'default'})"
        )
        driver = driver_factory(profile)
        session = cls(driver, profile)
        try:
            session._stealth_sub = session.events.subscribe(
                session._reinject_stealth, kinds=(DomContentEventFired,)
            )
            session.events.start()
            cookies = load_cookies(profile.cookie_file)
            if cookies:
                session.apply_cookies(cookies)
        except WebDriverException:
            session.close()
            raise
        return session

    @property
    def closed(self) -> bool:
        return self._closed

    def _reinject_stealth(self, event: DomContentEventFired) -> None:
        if self._closed:
            return
        try:
            self.driver.execute_script(STEALTH_JS)
        except WebDriverException as e:
            logger.debug(f"[SESSION] Stealth injection skipped: {e}")

    def apply_cookies(self, cookies: List[Dict[str, Any]]) -> int:
        """
        Set cookies on the browser through DevTools (no navigation needed).

        Individual cookie failures are logged and skipped.

        Returns:
            Number of cookies applied
        """
        applied = 0
        for cookie in cookies:
            try:
                self.driver.execute_cdp_cmd("Network.setCookie", _cookie_params(cookie))
                applied += 1
            except WebDriverException as e:
                logger.warning(f"[SESSION] Cookie {cookie.get('name')} rejected: {e}")
        self.cookies_applied = applied
        logger.info(f"[SESSION] Restored {applied}/{len(cookies)} cookies")
        return applied

    def enable_network(self) -> None:
        if self._network_enabled:
            return
        self.driver.execute_cdp_cmd("Network.enable", {})
        self._network_enabled = True

    def navigate(self, url: str) -> None:
        """Load url in the current tab. Raises NavigationError on failure."""
        logger.debug(f"[SESSION] Navigating: {url}")
        try:
            self.driver.get(url)
        except WebDriverException as e:
            raise NavigationError(url, getattr(e, "msg", None) or str(e)) from e

    def title(self) -> str:
        return self.driver.title or ""

    def evaluate(self, expression: str) -> Any:
        return self.driver.execute_script(f"return ({expression});")

    def inner_html(self, css_selector: str) -> str:
        try:
            element = self.driver.find_element(By.CSS_SELECTOR, css_selector)
        except NoSuchElementException as e:
            raise CatalogParseError(f"element not found: {css_selector}") from e
        return element.get_attribute("innerHTML") or ""

    def get_response_body(self, request_id: str) -> bytes:
        """
        Fetch a finished response's body by DevTools request id.

        Binary bodies (audio) come back base64-encoded.
        """
        result = self.driver.execute_cdp_cmd("Network.getResponseBody", {"requestId": request_id})
        body = result.get("body") or ""
        if result.get("base64Encoded"):
            return base64.b64decode(body)
        return body.encode("utf-8")

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self.events.stop()
        try:
            self.driver.quit()
        except WebDriverException as e:
            logger.warning(f"[SESSION] Browser did not quit cleanly: {e}")
        self._join_background()
        logger.info("[SESSION] Closed")

    def adopt_thread(self, thread: threading.Thread) -> None:
        """
        Take ownership of a worker still blocked on a driver call.

        Quitting the driver fails any call in flight, so close() joins these
        after quit().
        """
        with self._close_lock:
            self._background = [t for t in self._background if t.is_alive()]
            self._background.append(thread)

    def _join_background(self) -> None:
        with self._close_lock:
            threads, self._background = self._background, []
        deadline = time.monotonic() + BACKGROUND_JOIN_S
        for thread in threads:
            thread.join(max(0.0, deadline - time.monotonic()))
        stuck = [t.name for t in threads if t.is_alive()]
        if stuck:
            logger.warning(f"[SESSION] Workers still running after close: {', '.join(stuck)}")

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Session(headless={self.profile.headless}, "
            f"cookies={self.cookies_applied}, closed={self._closed})"
        )
