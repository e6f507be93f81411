"""Gateway session.

One GatewaySession per process. It owns the cache, dispatcher, recovery
pipeline, connection state machine and watchdog, and the event channel that
Telethon callbacks publish onto. A single pump loop routes each event, so a
failing handler is logged and never reaches the socket callbacks.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from core.cache import RecoveryCache
from core.config import (
    CacheConfig,
    DispatchConfig,
    ReconnectConfig,
    RecoveryConfig,
    SessionConfig,
    WatchdogConfig,
)
from core.connection import ConnectionStateMachine, is_fatal_session_error
from core.dispatcher import IngressDispatcher
from core.events import ConnectionClosed, MessagesDeleted, MessagesReceived
from core.ports import (
    CredentialStorePort,
    MediaFetcherPort,
    MessageHandlerPort,
    OwnerNotifierPort,
    SessionPort,
    StatusHandlerPort,
)
from core.recovery import DeletionRecovery
from core.watchdog import MemoryWatchdog

LOGGER = logging.getLogger(__name__)

_STOP = object()


class GatewaySession:
    """Explicit owner of all mutable gateway state."""

    def __init__(
        self,
        *,
        session: SessionPort,
        credentials: CredentialStorePort,
        notifier: OwnerNotifierPort,
        fetcher: MediaFetcherPort,
        handler: MessageHandlerPort,
        memory_sampler: Callable[[], float],
        exit_process: Callable[[int], None],
        connection_handle: Any = None,
        status_handler: Optional[StatusHandlerPort] = None,
        cache_config: Optional[CacheConfig] = None,
        dispatch_config: Optional[DispatchConfig] = None,
        recovery_config: Optional[RecoveryConfig] = None,
        reconnect_config: Optional[ReconnectConfig] = None,
        watchdog_config: Optional[WatchdogConfig] = None,
        session_config: Optional[SessionConfig] = None,
        is_fatal: Callable[[Optional[BaseException]], bool] = is_fatal_session_error,
    ) -> None:
        dispatch_config = dispatch_config or DispatchConfig()
        self._events: "asyncio.Queue[object]" = asyncio.Queue()
        self.cache = RecoveryCache(cache_config or CacheConfig())
        self.dispatcher = IngressDispatcher(
            self.cache,
            handler,
            dispatch_config,
            connection=connection_handle,
            status_handler=status_handler if dispatch_config.status_saver else None,
        )
        self.recovery = DeletionRecovery(
            self.cache,
            notifier,
            fetcher,
            recovery_config or RecoveryConfig(),
        )
        self.connection = ConnectionStateMachine(
            session,
            credentials,
            notifier,
            reconnect_config or ReconnectConfig(),
            exit_process,
            self.publish,
            session_config=session_config,
            status_saver=dispatch_config.status_saver,
            is_fatal=is_fatal,
        )
        self.watchdog = MemoryWatchdog(
            self.cache,
            memory_sampler,
            watchdog_config or WatchdogConfig(),
            exit_process,
        )
        self._watchdog_task: Optional[asyncio.Task] = None
        self._running = False

    def publish(self, event: object) -> None:
        """Queue an event for the pump loop. Safe to call from any callback."""

        self._events.put_nowait(event)

    async def run(self) -> None:
        """Start the watchdog and connection, then pump events until closed."""

        self._running = True
        self._watchdog_task = asyncio.get_running_loop().create_task(self.watchdog.run())
        await self.connection.start()
        while self._running:
            event = await self._events.get()
            if event is _STOP:
                break
            await self.route(event)

    async def route(self, event: object) -> None:
        try:
            if isinstance(event, MessagesReceived):
                self.dispatcher.submit(event.messages)
            elif isinstance(event, MessagesDeleted):
                self.recovery.submit(event.chat_id, event.message_ids)
            elif isinstance(event, ConnectionClosed):
                await self.connection.handle_closed(event.error)
            else:
                LOGGER.warning("Ignoring unknown event %r", event)
        except Exception:
            LOGGER.exception("Error while handling %s", type(event).__name__)

    def close(self) -> None:
        """Stop the pump and cancel every background task the session owns."""

        self._running = False
        self._events.put_nowait(_STOP)
        if self._watchdog_task is not None:
            self._watchdog_task.cancel()
        self.connection.cancel()
        self.dispatcher.cancel()
        self.recovery.cancel()
