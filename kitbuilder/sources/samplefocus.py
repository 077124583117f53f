"""
SampleFocus Kit Builder: one browser session per category.

For each configured category:
1. launch a fresh Session
2. fetch the search catalog (skip the category on failure, after a cooldown)
3. pick min(requested, available) samples at random
4. capture each one through the MediaInterceptor (skip failed samples)
5. close the Session and pause 10-20s before the next category

Nothing here is process-fatal: this class is the recovery boundary.
"""

from __future__ import annotations

import logging
import random
import time
from pathlib import Path
from typing import Callable, List, Optional, Set, Tuple

from selenium.common.exceptions import WebDriverException

from ..browser.catalog import CatalogFetcher
from ..browser.interceptor import MediaInterceptor
from ..browser.session import BrowserProfile, Session
from ..config import Category, KitConfig
from ..errors import KitBuilderError
from .base import CategoryResult, sample_path, select_random

logger = logging.getLogger(__name__)

FAILURE_COOLDOWN_S = 10.0
MIN_CATEGORY_DELAY_S = 10
MAX_CATEGORY_DELAY_S = 19


def profile_from_config(config: KitConfig) -> BrowserProfile:
    return BrowserProfile(
        executable_path=config.google_chrome_path,
        headless=config.headless,
        cookie_file=config.cookie_file,
    )


class SampleFocusKitBuilder:
    """
    Builds a kit from SampleFocus.

    Usage:
        builder = SampleFocusKitBuilder(config)
        results = builder.build()
    """

    def __init__(
        self,
        config: KitConfig,
        *,
        session_factory: Optional[Callable[[BrowserProfile], Session]] = None,
        fetcher: Optional[CatalogFetcher] = None,
        interceptor: Optional[MediaInterceptor] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
        failure_cooldown: float = FAILURE_COOLDOWN_S,
    ):
        self.config = config
        self.profile = profile_from_config(config)
        self.session_factory = session_factory or Session.create
        self.fetcher = fetcher or CatalogFetcher(base_url=config.base_url)
        self.interceptor = interceptor or MediaInterceptor()
        self.rng = rng or random.Random()
        self.failure_cooldown = failure_cooldown
        self._sleep = sleep
        self._downloaded: Set[str] = set()

    def build(self) -> List[CategoryResult]:
        categories = self.config.categories
        results = []
        for i, category in enumerate(categories):
            logger.info(
                f"[KIT] Searching SampleFocus for: '{category.name}' ({i + 1}/{len(categories)})"
            )
            result, pause = self.build_category(category)
            results.append(result)

            if pause and i < len(categories) - 1:
                delay = self.rng.randint(MIN_CATEGORY_DELAY_S, MAX_CATEGORY_DELAY_S)
                logger.info(f"[KIT] Waiting {delay} seconds before next category...")
                self._sleep(delay)
        return results

    def build_category(self, category: Category) -> Tuple[CategoryResult, bool]:
        """
        Run one category end to end.

        Returns:
            (result, pause) where pause says whether the inter-category
            delay should follow. Failed categories get the cooldown instead.
        """
        result = CategoryResult(category=category.name, requested=category.number_sounds)

        try:
            session = self.session_factory(self.profile)
        except (KitBuilderError, WebDriverException) as e:
            logger.error(f"[KIT] Could not start browser for '{category.name}': {e}")
            result.error = str(e)
            self._sleep(self.failure_cooldown)
            return result, False

        try:
            pause = self._collect(session, category, result)
        finally:
            session.close()

        if result.error is not None and not pause:
            self._sleep(self.failure_cooldown)
        elif pause:
            message = (
                f"[KIT] Downloaded {result.downloaded}/{result.selected - result.skipped} "
                f"samples for '{category.name}'"
            )
            if result.skipped:
                message += f" ({result.skipped} already in the kit)"
            logger.info(message)
        return result, pause

    def _collect(self, session: Session, category: Category, result: CategoryResult) -> bool:
        try:
            samples = self.fetcher.fetch(session, self.config.search_query(category))
        except (KitBuilderError, WebDriverException) as e:
            logger.error(f"[KIT] error fetching samplefocus sounds: {e}")
            result.error = str(e)
            return False

        if not samples:
            logger.warning(f"[KIT] warning: no samples found for category '{category.name}'")
            return False

        logger.info(f"[KIT] Found {len(samples)} samples for '{category.name}'")

        category_dir = Path(self.config.output_dir) / category.name
        try:
            category_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"[KIT] Error creating directory {category_dir}: {e}")
            result.error = str(e)
            return False

        chosen = select_random(samples, category.number_sounds, self.rng)
        result.selected = len(chosen)

        for sample in chosen:
            if sample.mp3_url in self._downloaded:
                logger.info(f"[KIT] Skipping '{sample.name}', already downloaded this run")
                result.skipped += 1
                continue
            try:
                self.interceptor.intercept_one(
                    session, sample.mp3_url, sample_path(category_dir, sample.name, ".mp3")
                )
            except (KitBuilderError, WebDriverException) as e:
                logger.warning(f"[KIT] Failed to download '{sample.name}': {e}")
                continue
            self._downloaded.add(sample.mp3_url)
            result.downloaded += 1
        return True
