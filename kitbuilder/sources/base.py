"""
Shared pieces of the kit builders: sample selection, result records and
output paths.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def select_random(items: Sequence[T], count: int, rng: Optional[random.Random] = None) -> List[T]:
    """
    Uniform sampling without replacement.

    Shuffles the index range and keeps the first min(count, len(items)).
    """
    rng = rng or random.Random()
    order = list(range(len(items)))
    rng.shuffle(order)
    return [items[i] for i in order[:max(0, min(count, len(items)))]]


def sanitize_filename(name: str) -> str:
    """Make a sample name safe to use as a file name."""
    safe = name.replace("/", "_").replace("\\", "_").replace("\x00", "").strip()
    if len(safe) > 200:
        safe = safe[:200]
    return safe or "sample"


def sample_path(category_dir: Path, name: str, extension: str) -> Path:
    return category_dir / f"{sanitize_filename(name)}{extension}"


@dataclass
class CategoryResult:
    """
    Outcome of one category.

    Attributes:
        category: Category name
        requested: How many samples the config asked for
        selected: How many were picked from the catalog
        downloaded: How many were saved
        skipped: Selected samples already saved earlier in the run
        error: Why the category was skipped, if it was
    """
    category: str
    requested: int
    selected: int = 0
    downloaded: int = 0
    skipped: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "category": self.category,
            "requested": self.requested,
            "selected": self.selected,
            "downloaded": self.downloaded,
            "skipped": self.skipped,
            "error": self.error,
        }
