"""Shared constants for the Textual UI."""

from __future__ import annotations

import os
from pathlib import Path

TELEGRAM_BLUE = "#2AABEE"
PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONFIG_PATH = Path(os.environ.get("AUTOLINK_CONFIG") or PROJECT_ROOT / "config.json")
