"""
Freesound Kit Builder: API search + direct download per category.
"""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import List, Optional

from ..clients.freesound_client import FreesoundClient
from ..config import Category, KitConfig
from ..errors import FreesoundError
from .base import CategoryResult, sample_path, select_random

logger = logging.getLogger(__name__)


class FreesoundKitBuilder:
    """
    Builds a kit from Freesound.

    Failures stay inside their category (search) or sample (download).
    """

    def __init__(self, config: KitConfig, client: FreesoundClient, rng: Optional[random.Random] = None):
        self.config = config
        self.client = client
        self.rng = rng or random.Random()

    def build(self) -> List[CategoryResult]:
        return [self.build_category(c) for c in self.config.categories]

    def build_category(self, category: Category) -> CategoryResult:
        result = CategoryResult(category=category.name, requested=category.number_sounds)

        try:
            sounds = self.client.search(self.config.search_query(category), self.config.max_duration)
        except FreesoundError as e:
            logger.error(f"[FREESOUND] Search failed for '{category.name}': {e}")
            result.error = str(e)
            return result

        logger.info(
            f"[FREESOUND] Found {len(sounds)} sounds in category '{category.name}' "
            f"(max duration: {self.config.max_duration:.1f}s)"
        )
        if not sounds:
            logger.warning(f"[FREESOUND] Warning: No sounds found for category '{category.name}'")
            return result

        category_dir = Path(self.config.output_dir) / category.name
        try:
            category_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"[FREESOUND] error creating category directory: {e}")
            result.error = str(e)
            return result

        chosen = select_random(sounds, category.number_sounds, self.rng)
        result.selected = len(chosen)

        for sound in chosen:
            try:
                self.client.download(
                    sound.id,
                    sample_path(category_dir, sound.name, ".wav"),
                    timeout=self.config.download_timeout_seconds,
                )
            except FreesoundError as e:
                logger.warning(f"[FREESOUND] Failed to download sound '{sound.name}': {e}")
                continue
            result.downloaded += 1

        logger.info(
            f"[FREESOUND] Downloaded {result.downloaded}/{result.selected} sounds for category '{category.name}'"
        )
        return result
