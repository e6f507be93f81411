"""Telegram client factory for lazarus.

Telethon's own reconnect loop is disabled: the core connection state machine
decides when to reconnect and when to give up.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient

from adapters.telegram_session import bootstrap_session_file

LOGGER = logging.getLogger(__name__)


def build_client(session_name: str) -> TelegramClient:
    """Create the user-account client.

    API_ID/API_HASH come from the environment (.env via python-dotenv).
    SESSION_STRING, when set, seeds the session file on first start.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    if not api_id or not api_hash:
        raise RuntimeError("API_ID and API_HASH must be set (see .env.example)")

    bootstrap_session_file(session_name, os.getenv("SESSION_STRING"))

    LOGGER.info("Building Telegram client for session %s", session_name)
    return TelegramClient(
        session_name,
        int(api_id),
        api_hash,
        auto_reconnect=False,
        connection_retries=1,
        device_model="Lazarus",
    )
