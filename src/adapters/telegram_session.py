"""Telethon session and credential adapters.

The client is built with auto_reconnect disabled; reconnection is decided by
the core connection state machine through this adapter.
"""

from __future__ import annotations

import logging
import os
import struct
from typing import Optional

from telethon import TelegramClient, errors
from telethon.sessions import SQLiteSession, StringSession
from telethon.tl.functions.channels import JoinChannelRequest

from core.connection import is_fatal_session_error
from core.errors import SessionInvalidError

LOGGER = logging.getLogger(__name__)

SESSION_SUFFIX = ".session"


def session_file_path(session_name: str) -> str:
    """Return the SQLite file Telethon uses for a session name."""

    if session_name.endswith(SESSION_SUFFIX):
        return session_name
    return f"{session_name}{SESSION_SUFFIX}"


def is_fatal_telegram_error(error: Optional[BaseException]) -> bool:
    """Fatal when Telegram rejects the auth key (401 family) or sees it twice."""

    if isinstance(error, (errors.UnauthorizedError, errors.AuthKeyDuplicatedError)):
        return True
    return is_fatal_session_error(error)


def bootstrap_session_file(session_name: str, session_string: Optional[str]) -> bool:
    """Write a SESSION_STRING into the session file when none exists yet."""

    path = session_file_path(session_name)
    if os.path.exists(path):
        LOGGER.info("Session file already exists, skipping bootstrap")
        return False
    if not session_string:
        return False

    try:
        source = StringSession(session_string.strip())
    except (ValueError, struct.error) as exc:
        raise SessionInvalidError("SESSION_STRING is not a valid Telethon string session") from exc

    target = SQLiteSession(session_name)
    try:
        target.set_dc(source.dc_id, source.server_address, source.port)
        target.auth_key = source.auth_key
        target.save()
    finally:
        target.close()
    LOGGER.info("Session bootstrapped from SESSION_STRING")
    return True


def has_stored_login(client: TelegramClient) -> bool:
    """True when the session file already carries an auth key.

    Such a session is connected by the state machine, so a network failure at
    startup goes through backoff instead of the interactive login.
    """

    return getattr(client.session, "auth_key", None) is not None


class TelegramSession:
    """SessionPort implementation over a TelegramClient."""

    def __init__(self, client: TelegramClient) -> None:
        self._client = client

    async def connect(self) -> None:
        await self._client.connect()
        if not await self._client.is_user_authorized():
            raise SessionInvalidError("stored session is not authorized")

    async def wait_disconnected(self) -> None:
        await self._client.disconnected

    async def join_channel(self, channel: str) -> None:
        await self._client(JoinChannelRequest(channel))


class SessionFileStore:
    """Credential store backed by the Telethon SQLite session file."""

    def __init__(self, client: TelegramClient, session_name: str) -> None:
        self._client = client
        self._path = session_file_path(session_name)

    def persist(self) -> None:
        self._client.session.save()

    def wipe(self) -> None:
        self._client.session.close()
        for path in (self._path, f"{self._path}-journal"):
            if os.path.exists(path):
                os.remove(path)
                LOGGER.info("Removed %s", path)
