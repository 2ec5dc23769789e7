"""
config.py — Central configuration for the Instagram publishing tools.

Loads .env and exposes all settings as module-level constants.
Every other tool imports from here.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

TMP_DIR = BASE_DIR / ".tmp"
TMP_DIR.mkdir(exist_ok=True)

BATCH_PATH = TMP_DIR / "publish_batch.json"
RESULTS_PATH = TMP_DIR / "publish_results.json"

# ---------------------------------------------------------------------------
# Instagram / Graph API
# ---------------------------------------------------------------------------
INSTAGRAM_ACCESS_TOKEN = os.getenv("INSTAGRAM_ACCESS_TOKEN", "")
INSTAGRAM_USER_ID = os.getenv("INSTAGRAM_USER_ID", "")  # default node for batch entries

# Graph host stays static; the version is configurable per entry
GRAPH_HOST = os.getenv("GRAPH_HOST", "graph.facebook.com")
GRAPH_API_VERSION = os.getenv("GRAPH_API_VERSION", "v22.0")
GRAPH_TIMEOUT = float(os.getenv("GRAPH_TIMEOUT", "60"))  # seconds per request


def check_credentials() -> list[str]:
    """Return the names of required settings that are missing."""
    missing = []
    if not INSTAGRAM_ACCESS_TOKEN:
        missing.append("INSTAGRAM_ACCESS_TOKEN")
    return missing
