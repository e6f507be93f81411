"""Connection state machine.

Owns the session lifecycle: connect, watch for disconnects, decide between
a scheduled reconnect and giving up. State and the reconnect counter live on
this object and are only touched from the event loop thread.

    IDLE -> CONNECTING -> OPEN -> CLOSED -> (backoff) -> CONNECTING
    CONNECTING -> CLOSED when the connect call itself fails
    CLOSED -> exit once the attempt counter passes max_attempts
    any -> FATAL_SESSION (credentials wiped, process exits)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from core.backoff import reconnect_delay
from core.config import ReconnectConfig, SessionConfig
from core.errors import SessionInvalidError
from core.events import ConnectionClosed
from core.models import EXIT_FATAL_SESSION, EXIT_RECONNECT_EXHAUSTED, ConnectionState
from core.ports import CredentialStorePort, OwnerNotifierPort, SessionPort

LOGGER = logging.getLogger(__name__)

UNAUTHORIZED_CODE = 401


def is_fatal_session_error(error: Optional[BaseException]) -> bool:
    """Return True when the error means the stored credentials are dead."""

    if error is None:
        return False
    if isinstance(error, SessionInvalidError):
        return True
    return getattr(error, "code", None) == UNAUTHORIZED_CODE


class ConnectionStateMachine:
    """Keeps exactly one logical session open, with capped backoff."""

    def __init__(
        self,
        session: SessionPort,
        credentials: CredentialStorePort,
        notifier: OwnerNotifierPort,
        config: ReconnectConfig,
        exit_process: Callable[[int], None],
        publish: Callable[[object], None],
        session_config: Optional[SessionConfig] = None,
        status_saver: bool = False,
        is_fatal: Callable[[Optional[BaseException]], bool] = is_fatal_session_error,
    ) -> None:
        self._session = session
        self._credentials = credentials
        self._notifier = notifier
        self._config = config
        self._exit_process = exit_process
        self._publish = publish
        self._session_config = session_config or SessionConfig()
        self._status_saver = status_saver
        self._is_fatal = is_fatal
        self.state = ConnectionState.IDLE
        self.reconnect_attempts = 0
        self._reconnect_pending = False
        self._reconnect_task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_pending

    def _transition(self, state: ConnectionState) -> None:
        if state is not self.state:
            LOGGER.debug("Connection %s -> %s", self.state.value, state.value)
        self.state = state

    async def start(self) -> None:
        """Open the session, or route the failure into the closed handler."""

        if self.state in (
            ConnectionState.CONNECTING,
            ConnectionState.OPEN,
            ConnectionState.FATAL_SESSION,
        ):
            return

        self._transition(ConnectionState.CONNECTING)
        LOGGER.info("Connecting (attempt %s)", self.reconnect_attempts + 1)
        try:
            await asyncio.wait_for(self._session.connect(), timeout=self._config.connect_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.error("Connect failed: %s", exc)
            await self.handle_closed(exc)
            return
        await self.handle_open()

    async def handle_open(self) -> None:
        self._transition(ConnectionState.OPEN)
        self.reconnect_attempts = 0
        LOGGER.info("Connected")

        try:
            self._credentials.persist()
        except Exception:
            LOGGER.exception("Failed to persist credentials")

        try:
            await self._notifier.send_connected(self._status_saver)
        except Exception as exc:
            LOGGER.error("Connected notice failed: %s", exc)

        for channel in self._session_config.auto_join:
            try:
                await self._session.join_channel(channel)
                LOGGER.info("Joined %s", channel)
            except Exception as exc:
                LOGGER.warning("Failed to join %s: %s", channel, exc)

        self._watch_task = asyncio.get_running_loop().create_task(self._watch())

    async def _watch(self) -> None:
        error: Optional[BaseException] = None
        try:
            await self._session.wait_disconnected()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = exc
        self._publish(ConnectionClosed(error))

    async def handle_closed(self, error: Optional[BaseException] = None) -> None:
        """React to a disconnect, with or without an error."""

        if self.state is ConnectionState.FATAL_SESSION:
            return

        if self._is_fatal(error):
            self._transition(ConnectionState.FATAL_SESSION)
            LOGGER.error("Session is no longer valid (%s); wiping credentials", error)
            try:
                self._credentials.wipe()
                LOGGER.info("Stored session cleared")
            except Exception:
                LOGGER.exception("Failed to clear stored session")
            self._exit_process(EXIT_FATAL_SESSION)
            return

        self._transition(ConnectionState.CLOSED)
        self.reconnect_attempts += 1
        if self.reconnect_attempts > self._config.max_attempts:
            LOGGER.error(
                "Giving up after %s reconnect attempts", self._config.max_attempts
            )
            self._exit_process(EXIT_RECONNECT_EXHAUSTED)
            return

        delay = reconnect_delay(self.reconnect_attempts, self._config)
        LOGGER.warning(
            "Disconnected (%s). Reconnecting in %.1fs (attempt %s/%s)",
            error or "no error",
            delay,
            self.reconnect_attempts,
            self._config.max_attempts,
        )
        self._schedule_reconnect(delay)

    def handle_pairing_available(self, url: str) -> None:
        LOGGER.info("QR login available, scan it to authenticate")
        LOGGER.debug("QR login url: %s", url)

    def _schedule_reconnect(self, delay: float) -> None:
        if self._reconnect_pending:
            LOGGER.debug("Reconnect already pending, skipping")
            return
        self._reconnect_pending = True
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect_after(delay)
        )

    async def _reconnect_after(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        finally:
            self._reconnect_pending = False
        await self.start()

    def cancel(self) -> None:
        for task in (self._reconnect_task, self._watch_task):
            if task is not None and not task.done():
                task.cancel()
        self._reconnect_pending = False
