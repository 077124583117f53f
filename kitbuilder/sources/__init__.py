"""
Sample sources. Each builder walks the configured categories and returns
one CategoryResult per category.
"""

from .base import CategoryResult, sample_path, sanitize_filename, select_random
from .freesound import FreesoundKitBuilder
from .samplefocus import SampleFocusKitBuilder, profile_from_config

__all__ = [
    "CategoryResult",
    "sample_path",
    "sanitize_filename",
    "select_random",
    "FreesoundKitBuilder",
    "SampleFocusKitBuilder",
    "profile_from_config",
]
