"""Static configuration for yapswatch.

All user-editable settings (tracking cadence, score API, logging) live in a
single JSON file for quick edits without touching Python. Secrets stay in the
environment (.env).
"""

import json
import os

from dotenv import load_dotenv

from core.config import (
    DEFAULT_BATCH_DELAY_MS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_INTERVAL_MINUTES,
    KaitoConfig,
    TrackingConfig,
)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.environ.get("YAPSWATCH_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))

load_dotenv()


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database; relative paths are anchored at the project root.
_database = _CONFIG.get("database", {})
DB_PATH = _database.get("path", "yapswatch.db")
if not os.path.isabs(DB_PATH):
    DB_PATH = os.path.join(PROJECT_ROOT, DB_PATH)

# Tracking cadence. CHECK_INTERVAL_MINUTES in the environment wins over the file
# so deployments can tune the interval without editing config.json.
_tracking = _CONFIG.get("tracking", {})
TRACKING_ENABLED = bool(_tracking.get("enabled", True))
INTERVAL_MINUTES = float(
    os.getenv("CHECK_INTERVAL_MINUTES") or _tracking.get("interval_minutes", DEFAULT_INTERVAL_MINUTES)
)
BATCH_SIZE = int(_tracking.get("batch_size", DEFAULT_BATCH_SIZE))
BATCH_DELAY_MS = int(_tracking.get("batch_delay_ms", DEFAULT_BATCH_DELAY_MS))

TRACKING = TrackingConfig(
    interval_seconds=INTERVAL_MINUTES * 60,
    batch_size=BATCH_SIZE,
    batch_delay_seconds=BATCH_DELAY_MS / 1000,
)

# Score API endpoint and per-request timeout.
_kaito = _CONFIG.get("kaito", {})
KAITO = KaitoConfig(
    base_url=_kaito.get("base_url", KaitoConfig.base_url),
    timeout_seconds=float(_kaito.get("timeout_seconds", KaitoConfig.timeout_seconds)),
)

# /compare accepts at most this many accounts.
_commands = _CONFIG.get("commands", {})
MAX_COMPARE = int(_commands.get("max_compare", 4))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
