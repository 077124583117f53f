"""
Configuration: config.json + environment overrides.

The JSON file holds the kit layout (categories, search prefix, source).
Secrets and machine-specific paths can come from the environment instead,
loaded from a .env file next to the working directory:

    FREESOUND_CLIENT_ID, FREESOUND_CLIENT_SECRET
    GOOGLE_CHROME_PATH
    KITBUILDER_OUTPUT_DIR
    KITBUILDER_HEADLESS
    KITBUILDER_CONFIG      (path of the JSON file, default config.json)
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.json"
DEFAULT_MAX_DURATION = 5.0
DEFAULT_DOWNLOAD_TIMEOUT = 10
DEFAULT_OUTPUT_DIR = "./sounds"


def _getenv_bool(name: str, default: bool) -> bool:
    v = os.getenv(name, str(default)).strip().lower()
    return v in ("1", "true", "yes", "y", "on")


class Category(BaseModel):
    """A kit category: what to search for and how many samples to keep."""
    model_config = ConfigDict(frozen=True)

    name: str
    number_sounds: int = Field(default=0, ge=0)


class KitConfig(BaseModel):
    """Validated contents of config.json."""
    model_config = ConfigDict(frozen=True)

    client_id: str = ""
    client_secret: str = ""
    search_prefix: str = ""
    max_duration: float = DEFAULT_MAX_DURATION
    download_timeout_seconds: int = DEFAULT_DOWNLOAD_TIMEOUT
    output_dir: str = DEFAULT_OUTPUT_DIR
    categories: List[Category] = []
    samples_source: Literal["samplefocus", "freesound"] = "samplefocus"
    google_chrome_path: Optional[str] = None

    cookie_file: str = "cookies.json"
    headless: bool = False
    base_url: str = "https://samplefocus.com"

    # zero means "not set" in config.json
    @field_validator("max_duration")
    @classmethod
    def _default_duration(cls, v: float) -> float:
        return v or DEFAULT_MAX_DURATION

    @field_validator("download_timeout_seconds")
    @classmethod
    def _default_timeout(cls, v: int) -> int:
        return v or DEFAULT_DOWNLOAD_TIMEOUT

    @field_validator("output_dir")
    @classmethod
    def _default_output(cls, v: str) -> str:
        return v.strip() or DEFAULT_OUTPUT_DIR

    @field_validator("google_chrome_path")
    @classmethod
    def _blank_path(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v and v.strip() else None

    def search_query(self, category: Category) -> str:
        """Search term for a category: '<prefix> <name>' (prefix may be empty)."""
        return f"{self.search_prefix} {category.name}".strip()


def _env_overrides() -> dict:
    overrides = {}
    for env_name, field_name in (
        ("FREESOUND_CLIENT_ID", "client_id"),
        ("FREESOUND_CLIENT_SECRET", "client_secret"),
        ("GOOGLE_CHROME_PATH", "google_chrome_path"),
        ("KITBUILDER_OUTPUT_DIR", "output_dir"),
    ):
        value = os.getenv(env_name, "").strip()
        if value:
            overrides[field_name] = value
    if os.getenv("KITBUILDER_HEADLESS") is not None:
        overrides["headless"] = _getenv_bool("KITBUILDER_HEADLESS", False)
    return overrides


def load_config(path: Optional[str] = None) -> KitConfig:
    """
    Load and validate the kit configuration.

    Args:
        path: JSON config path. Falls back to $KITBUILDER_CONFIG, then config.json.

    Returns:
        KitConfig with defaults applied and environment overrides merged in

    Raises:
        ConfigError: If the file cannot be read or does not validate
    """
    load_dotenv()

    config_path = Path(path or os.getenv("KITBUILDER_CONFIG", DEFAULT_CONFIG_FILE))
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"error reading config file {config_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"error parsing config file {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"error parsing config file {config_path}: expected a JSON object")

    raw.update(_env_overrides())

    try:
        config = KitConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid config file {config_path}: {e}") from e

    logger.info(
        f"[CONFIG] Loaded {config_path}: source={config.samples_source}, "
        f"categories={len(config.categories)}, output={config.output_dir}"
    )
    return config
