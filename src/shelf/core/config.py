"""Configuration management for Shelf core."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable with optional default."""
    return os.getenv(key, default)


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Invalid float for %s: %r, using %s", key, value, default)
        return default


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key, "").lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return default


# Shelf Data Directory (XDG-style, defaults to ~/.shelf)
SHELF_DATA_DIR = Path(
    get_env("SHELF_DATA_DIR", os.path.expanduser("~/.shelf"))
    or os.path.expanduser("~/.shelf")
)

# Persisted collections file, resolved inside the save location
COLLECTIONS_FILENAME = "collections.json"

# Reserved id of the synthetic "All Notes" collection
DEFAULT_COLLECTION_ID = "all"

# Debounce window for bursty notifications (note create/delete)
DEBOUNCE_SECONDS = get_env_float("SHELF_DEBOUNCE_SECONDS", 0.3)

# Logging
LOG_LEVEL = get_env("LOG_LEVEL", "INFO")
DEBUG = get_env_bool("SHELF_DEBUG")


def get_save_location() -> Path:
    """
    Resolve the directory that holds the collections file.

    Read on every call so that a changed SHELF_SAVE_LOCATION takes effect
    without a restart.
    """
    location = get_env("SHELF_SAVE_LOCATION")
    if location:
        return Path(location).expanduser()
    return SHELF_DATA_DIR


def setup_logging() -> logging.Logger:
    """Configure and return logger."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, (LOG_LEVEL or "INFO").upper(), logging.INFO),
    )
    return logging.getLogger(__name__)
