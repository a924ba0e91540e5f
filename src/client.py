"""Telethon client construction for autolinker."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient

LOGGER = logging.getLogger(__name__)


def build_client() -> TelegramClient:
    """Build an unstarted client from API_ID, API_HASH and SESSION_NAME.

    Values come from the environment or a local .env file. The session file is
    named after SESSION_NAME ("autolinker" unless set).
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "autolinker")
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")
    if not api_id.isdigit():
        raise RuntimeError("API_ID must be numeric")

    LOGGER.info("Initializing Telegram client (session %s)", session_name)
    return TelegramClient(session_name, int(api_id), api_hash)
