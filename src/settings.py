"""Static configuration for autolinker.

All user-editable settings (rules, plugin flags, logging) live in a single
JSON file for quick edits without touching Python.
"""

import json
import os

from core.config import AutolinkConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Rules and flags are loaded from config.json; AUTOLINK_CONFIG points
# elsewhere, e.g. for a second account.
CONFIG_PATH = os.environ.get("AUTOLINK_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Seeds the rule registry; `/autolink` edits publish newer snapshots there.
AUTOLINK = AutolinkConfig.from_dict(_CONFIG)

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
