"""Ingress dispatcher.

Turns bursts of new messages into an ordered, single-flight stream for the
external message handler. Every message that carries content is cached
before it is queued, so recovery data exists even when the handler is slow.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Iterable, Optional

from core.cache import RecoveryCache
from core.config import DispatchConfig
from core.models import InboundMessage
from core.ports import MessageHandlerPort, StatusHandlerPort

LOGGER = logging.getLogger(__name__)


class IngressDispatcher:
    """FIFO queue drained one message at a time into the handler."""

    def __init__(
        self,
        cache: RecoveryCache,
        handler: MessageHandlerPort,
        config: DispatchConfig,
        connection: Any = None,
        status_handler: Optional[StatusHandlerPort] = None,
    ) -> None:
        self._cache = cache
        self._handler = handler
        self._config = config
        self._connection = connection
        self._status_handler = status_handler
        self._queue: deque[InboundMessage] = deque()
        self._draining = False
        self._drain_task: Optional[asyncio.Task] = None
        self._status_tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def draining(self) -> bool:
        return self._draining

    def submit(self, messages: Iterable[InboundMessage]) -> None:
        """Cache, classify and enqueue one inbound batch."""

        for message in messages:
            if not message.has_identity:
                continue

            if message.has_content and (not message.broadcast or self._config.cache_broadcasts):
                self._cache.put(message)

            if message.broadcast:
                self._route_broadcast(message)
                continue

            # Protocol-only envelopes have nothing for the handler to act on.
            if not message.has_content:
                continue
            self._queue.append(message)

        self.start_draining()

    def start_draining(self) -> None:
        if self._draining or not self._queue:
            return
        self._draining = True
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def join(self) -> None:
        """Wait until the queue is empty and no drain is running."""

        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)
        if self._status_tasks:
            await asyncio.gather(*list(self._status_tasks), return_exceptions=True)

    def cancel(self) -> None:
        if self._drain_task is not None:
            self._drain_task.cancel()
        for task in list(self._status_tasks):
            task.cancel()

    async def _drain(self) -> None:
        try:
            while self._queue:
                message = self._queue.popleft()
                try:
                    await self._handler.handle(self._connection, message)
                except Exception:
                    LOGGER.exception(
                        "Message handler failed for %s/%s", message.chat_id, message.message_id
                    )
                await asyncio.sleep(self._config.item_delay)
        finally:
            self._draining = False

    def _route_broadcast(self, message: InboundMessage) -> None:
        if self._status_handler is None:
            return
        task = asyncio.get_running_loop().create_task(self._handle_status(message))
        self._status_tasks.add(task)
        task.add_done_callback(self._status_tasks.discard)

    async def _handle_status(self, message: InboundMessage) -> None:
        try:
            await self._status_handler.handle(message)
        except Exception:
            LOGGER.exception("Status handler failed for %s", message.chat_id)
