"""Deletion recovery pipeline.

When a message is reported deleted, look it up in the recovery cache and
re-deliver its content to the owner. Deletions are processed one at a time
with a minimum interval between them, so a bulk delete turns into a paced
series of owner notices instead of a flood.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from typing import Any, Iterable, Optional, Tuple

from core.cache import RecoveryCache
from core.config import RecoveryConfig
from core.errors import MediaTooLarge
from core.models import ContentKind, InboundMessage, RecoveryOutcome
from core.ports import MediaFetcherPort, OwnerNotifierPort

LOGGER = logging.getLogger(__name__)

PREVIEW_CHARS = 3000


def build_preview(payload: Any, limit: int = PREVIEW_CHARS) -> str:
    """Render a structured, truncated dump of an unsupported payload."""

    to_dict = getattr(payload, "to_dict", None)
    if callable(to_dict):
        text = json.dumps(to_dict(), indent=2, default=str, ensure_ascii=False)
    else:
        text = repr(payload)
    if len(text) > limit:
        text = text[:limit] + "\n..."
    return text


class DeletionRecovery:
    """Reconstructs deleted messages from the cache for the owner."""

    def __init__(
        self,
        cache: RecoveryCache,
        notifier: OwnerNotifierPort,
        fetcher: MediaFetcherPort,
        config: RecoveryConfig,
    ) -> None:
        self._cache = cache
        self._notifier = notifier
        self._fetcher = fetcher
        self._config = config
        self._jobs: deque[Tuple[Optional[int], int]] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._last_started: Optional[float] = None

    @property
    def pending(self) -> int:
        return len(self._jobs)

    def submit(self, chat_id: Optional[int], message_ids: Iterable[int]) -> None:
        for message_id in message_ids:
            self._jobs.append((chat_id, message_id))
        if self._jobs and (self._worker is None or self._worker.done()):
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def join(self) -> None:
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    def cancel(self) -> None:
        if self._worker is not None:
            self._worker.cancel()

    async def _drain(self) -> None:
        loop = asyncio.get_running_loop()
        while self._jobs:
            if self._last_started is not None:
                wait = self._config.min_interval - (loop.time() - self._last_started)
                if wait > 0:
                    await asyncio.sleep(wait)
            chat_id, message_id = self._jobs.popleft()
            self._last_started = loop.time()
            try:
                await self.recover(chat_id, message_id)
            except Exception:
                LOGGER.exception("Recovery failed for %s/%s", chat_id, message_id)

    def _lookup(self, chat_id: Optional[int], message_id: int) -> Optional[InboundMessage]:
        if chat_id is not None:
            return self._cache.get(chat_id, message_id)
        # Without a chat id the deletion came from a private chat or basic group.
        return self._cache.find(message_id, lambda message: not message.channel)

    async def recover(self, chat_id: Optional[int], message_id: int) -> RecoveryOutcome:
        """Run the recovery decision procedure for one deleted message."""

        cached = self._lookup(chat_id, message_id)
        if cached is None:
            LOGGER.info("Deleted message %s in %s was not cached", message_id, chat_id)
            await self._notifier.send_unrecovered(chat_id, message_id)
            return RecoveryOutcome.MISSED

        if cached.outgoing:
            LOGGER.debug("Ignoring self-deleted message %s/%s", cached.chat_id, message_id)
            return RecoveryOutcome.IGNORED

        if cached.kind is ContentKind.TEXT:
            await self._notifier.send_recovered_text(cached)
        elif cached.is_media:
            await self._notifier.send_recovery_header(cached)
            try:
                await self._reupload(cached)
            except Exception as exc:
                LOGGER.error(
                    "Reupload failed for %s/%s: %s", cached.chat_id, cached.message_id, exc
                )
                await self._notifier.send_reupload_failed(cached, exc)
                return RecoveryOutcome.FAILED
        else:
            await self._notifier.send_unsupported(cached, build_preview(cached.payload))

        if self._config.consume_on_recovery:
            self._cache.pop(cached.chat_id, cached.message_id)
        LOGGER.info(
            "Recovered deleted %s from %s in %s",
            cached.kind.value,
            cached.sender_label or cached.sender_id,
            cached.chat_label or cached.chat_id,
        )
        return RecoveryOutcome.RECOVERED

    async def _reupload(self, cached: InboundMessage) -> None:
        limit = self._config.max_media_bytes
        if cached.file_size is not None and cached.file_size > limit:
            raise MediaTooLarge(cached.file_size, limit)
        data = await asyncio.wait_for(
            self._fetcher.fetch(cached, limit),
            timeout=self._config.download_timeout,
        )
        await self._notifier.send_recovered_media(cached, data)
