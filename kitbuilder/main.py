"""
KitBuilder entry point.

1. Configure logging (colored console, JSON file log, error log)
2. Load config.json (+ .env overrides)
3. Recreate the output directory
4. Build the kit from the configured source

Only failures before a builder starts (config, output directory, Freesound
login) stop the process; everything inside a builder is per-category.
"""

import logging
import shutil
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import List, Optional

from pythonjsonlogger import jsonlogger

from .clients.freesound_client import FreesoundClient
from .clients.oauth_callback import authorize
from .config import KitConfig, load_config
from .errors import AuthError, ConfigError
from .sources.base import CategoryResult
from .sources.freesound import FreesoundKitBuilder
from .sources.samplefocus import SampleFocusKitBuilder

LOGGER_NAME = "kitbuilder"

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'

    def format(self, record):
        # format a copy so the file handlers don't receive the escape codes
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{self.BOLD}{record.levelname}{self.RESET}"
        record.msg = f"{color}{record.getMessage()}{self.RESET}"
        record.args = None
        return super().format(record)


def setup_logging(log_dir: str = ".") -> logging.Logger:
    """Setup console, JSON file and error-file logging for the kitbuilder package."""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Clear existing handlers
    logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(ColoredFormatter(
        '%(asctime)s | %(levelname)s | [%(name)s] %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    # Structured JSON logs, rotated daily, 7 days kept
    file_handler = TimedRotatingFileHandler(
        str(Path(log_dir) / "kitbuilder.log"),
        when="midnight", interval=1, backupCount=7, encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(message)s %(lineno)d %(funcName)s',
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    ))
    logger.addHandler(file_handler)

    error_handler = logging.FileHandler(str(Path(log_dir) / "kitbuilder.error.log"), mode='a', encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(error_handler)

    return logger


# ============================================================================
# RUN
# ============================================================================

def prepare_output_dir(path: str) -> Path:
    """
    Wipe and recreate the output root.

    Raises:
        ConfigError: If the path is a filesystem root or contains the working directory
        OSError: If the directory can't be removed or created
    """
    out = Path(path)
    resolved = out.resolve()
    cwd = Path.cwd().resolve()
    if resolved == Path(resolved.anchor) or resolved == cwd or resolved in cwd.parents:
        raise ConfigError(f"refusing to wipe output_dir '{path}': it contains the working directory")
    if out.exists():
        shutil.rmtree(out)
    out.mkdir(parents=True, exist_ok=True)
    return out


def build_kit(config: KitConfig) -> List[CategoryResult]:
    if config.samples_source == "freesound":
        token = authorize(config.client_id, config.client_secret)
        client = FreesoundClient(token)
        try:
            return FreesoundKitBuilder(config, client).build()
        finally:
            client.close()
    return SampleFocusKitBuilder(config).build()


def main(config_path: Optional[str] = None) -> int:
    logger = setup_logging()

    try:
        config = load_config(config_path)
    except ConfigError as e:
        logger.critical(f"[MAIN] {e}")
        return 1

    try:
        prepare_output_dir(config.output_dir)
    except ConfigError as e:
        logger.critical(f"[MAIN] {e}")
        return 1
    except OSError as e:
        logger.critical(f"[MAIN] error creating sounds directory: {e}")
        return 1

    try:
        results = build_kit(config)
    except AuthError as e:
        logger.critical(f"[MAIN] error authenticating with freesound: {e}")
        return 1

    downloaded = sum(r.downloaded for r in results)
    skipped = [r.category for r in results if not r.ok]
    if skipped:
        logger.warning(f"[MAIN] Skipped categories: {', '.join(skipped)}")
    logger.info(f"[MAIN] Drumkit building complete! {downloaded} files in {config.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
