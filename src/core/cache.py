"""Bounded in-memory cache of recently seen messages.

Entries are kept in an OrderedDict in insertion order, so the oldest entry is
always at the front and eviction is an explicit popitem(last=False).
Re-inserting an existing key moves it to the back.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, Optional

from core.config import CacheConfig
from core.models import CacheKey, CacheStats, InboundMessage

LOGGER = logging.getLogger(__name__)


class RecoveryCache:
    """Insertion-ordered map of (chat_id, message_id) to InboundMessage."""

    def __init__(self, config: CacheConfig) -> None:
        self._config = config
        self._entries: "OrderedDict[CacheKey, InboundMessage]" = OrderedDict()
        self._hits = 0
        self._misses = 0

    @property
    def max_size(self) -> int:
        return self._config.max_size

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def keys(self) -> list[CacheKey]:
        """Return keys oldest-first."""

        return list(self._entries)

    def put(self, message: InboundMessage) -> bool:
        """Store a message; returns False when there is nothing to keep."""

        if not message.has_identity or not message.has_content:
            return False
        key = message.key
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = message
        if len(self._entries) > self._config.max_size:
            self.evict()
        return True

    def get(self, chat_id: int, message_id: int) -> Optional[InboundMessage]:
        message = self._entries.get((chat_id, message_id))
        self._count(message)
        return message

    def find(
        self,
        message_id: int,
        predicate: Optional[Callable[[InboundMessage], bool]] = None,
    ) -> Optional[InboundMessage]:
        """Return the newest entry with this message id, optionally filtered."""

        for message in reversed(self._entries.values()):
            if message.message_id != message_id:
                continue
            if predicate is not None and not predicate(message):
                continue
            self._count(message)
            return message
        self._count(None)
        return None

    def pop(self, chat_id: int, message_id: int) -> Optional[InboundMessage]:
        return self._entries.pop((chat_id, message_id), None)

    def evict(self) -> int:
        """Drop oldest entries until the size bound holds again."""

        overflow = len(self._entries) - self._config.max_size
        if overflow <= 0:
            return 0
        if self._config.eviction == "batch":
            count = max(overflow, int(len(self._entries) * self._config.batch_fraction))
        else:
            count = overflow
        removed = self._drop_oldest(count)
        if self._config.eviction == "batch":
            LOGGER.debug("Cache evicted %s entries, %s remaining", removed, len(self._entries))
        return removed

    def trim(self, target_size: int) -> int:
        """Drop oldest entries until at most ``target_size`` remain."""

        target_size = max(0, target_size)
        removed = self._drop_oldest(len(self._entries) - target_size)
        if removed:
            LOGGER.info("Cache trimmed by %s entries, %s remaining", removed, len(self._entries))
        return removed

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._entries),
            max_size=self._config.max_size,
            hits=self._hits,
            misses=self._misses,
        )

    def _drop_oldest(self, count: int) -> int:
        removed = 0
        while removed < count and self._entries:
            self._entries.popitem(last=False)
            removed += 1
        return removed

    def _count(self, message: Optional[InboundMessage]) -> None:
        if message is None:
            self._misses += 1
        else:
            self._hits += 1
