"""Core domain models.

These types are shared across the core and adapters to avoid tight coupling
to any Telethon-specific types. The raw Telethon message only travels as an
opaque ``payload``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Tuple

EXIT_FATAL_SESSION = 3
EXIT_RECONNECT_EXHAUSTED = 4
EXIT_CRITICAL_MEMORY = 5

CacheKey = Tuple[int, int]


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    FATAL_SESSION = "fatal_session"


class ContentKind(str, Enum):
    """The single content variant a message carries."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    STICKER = "sticker"
    DOCUMENT = "document"
    OTHER = "other"
    EMPTY = "empty"


MEDIA_KINDS = frozenset(
    {
        ContentKind.IMAGE,
        ContentKind.VIDEO,
        ContentKind.AUDIO,
        ContentKind.STICKER,
        ContentKind.DOCUMENT,
    }
)


class RecoveryOutcome(str, Enum):
    IGNORED = "ignored"
    MISSED = "missed"
    RECOVERED = "recovered"
    FAILED = "failed"


@dataclass(frozen=True)
class InboundMessage:
    """One observed chat message, as queued for dispatch and kept for recovery."""

    chat_id: Optional[int]
    message_id: Optional[int]
    kind: ContentKind
    text: str = ""
    sender_id: Optional[int] = None
    sender_label: Optional[str] = None
    chat_label: Optional[str] = None
    # Sent by the account itself.
    outgoing: bool = False
    # Channel ids scope message ids per chat; everything else is account-wide.
    channel: bool = False
    broadcast: bool = False
    mime_type: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    date: Optional[datetime] = None
    payload: Any = None

    @property
    def key(self) -> CacheKey:
        return (self.chat_id, self.message_id)

    @property
    def has_identity(self) -> bool:
        return self.chat_id is not None and self.message_id is not None

    @property
    def has_content(self) -> bool:
        return self.kind is not ContentKind.EMPTY

    @property
    def is_media(self) -> bool:
        return self.kind in MEDIA_KINDS


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_size: int
    hits: int
    misses: int
