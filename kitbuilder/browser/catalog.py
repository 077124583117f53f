"""
Catalog Fetcher: pull the sample list out of a SampleFocus search page.

SampleFocus renders search results with React-on-Rails. The server embeds
the props for each component as JSON inside
<script class="js-react-on-rails-component">; the third one carries the
search results. We wait until the React-on-Rails bootstrap flag is set, then
read and parse that script's text.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Callable, List, Optional
from urllib.parse import quote_plus

from pydantic import ValidationError
from selenium.common.exceptions import WebDriverException

from ..errors import CatalogParseError, RenderTimeout
from ..schemas import CatalogPayload, Sample
from .challenge import ChallengeGate
from .polling import PollTimeout, poll_until

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://samplefocus.com"
RENDER_FLAG = "window.__REACT_ON_RAILS_EVENT_HANDLERS_RAN_ONCE__ === true"
CATALOG_SELECTOR = "script.js-react-on-rails-component:nth-child(3)"


def search_url(base_url: str, term: str) -> str:
    return f"{base_url.rstrip('/')}/samples?search={quote_plus(term)}"


def parse_catalog(raw: str) -> List[Sample]:
    """
    Parse the embedded catalog JSON.

    Raises:
        CatalogParseError: On malformed JSON or a missing/invalid samples list
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise CatalogParseError(f"failed to decode data: {e}") from e

    try:
        return list(CatalogPayload.model_validate(data).samples)
    except ValidationError as e:
        raise CatalogParseError(f"unexpected catalog shape: {e}") from e


class CatalogFetcher:
    """
    Navigates a session to a search page and returns the parsed samples.

    Usage:
        fetcher = CatalogFetcher()
        samples = fetcher.fetch(session, "trap kick")
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        gate: Optional[ChallengeGate] = None,
        load_delay: float = 1.0,
        render_interval: float = 0.5,
        render_timeout: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url
        self.gate = gate or ChallengeGate(sleep=sleep)
        self.load_delay = load_delay
        self.render_interval = render_interval
        self.render_timeout = render_timeout
        self._sleep = sleep

    def _rendered(self, session) -> bool:
        return session.evaluate(RENDER_FLAG) is True

    def fetch(self, session, term: str) -> List[Sample]:
        """
        Fetch the sample catalog for a search term.

        Returns:
            Samples in page order (possibly empty)

        Raises:
            NavigationError, ChallengeTimeout, RenderTimeout, CatalogParseError
        """
        url = search_url(self.base_url, term)
        logger.info(f"[CATALOG] Searching: {url}")

        session.navigate(url)
        self._sleep(self.load_delay)

        self.gate.wait_until_clear(session)

        try:
            poll_until(
                lambda: self._rendered(session),
                interval=self.render_interval,
                timeout=self.render_timeout,
                description="React render flag",
                target=session,
            )
        except PollTimeout as e:
            raise RenderTimeout(f"page did not finish rendering within {self.render_timeout:.0f}s") from e

        try:
            raw = session.inner_html(CATALOG_SELECTOR)
        except WebDriverException as e:
            raise CatalogParseError(f"could not read catalog script: {e}") from e

        samples = parse_catalog(raw)
        logger.debug(f"[CATALOG] Parsed {len(samples)} samples for '{term}'")
        return samples
