"""Typed events published onto the gateway session channel.

Telethon callbacks never call into the core directly; they publish one of
these and the session pump routes it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from core.models import InboundMessage


@dataclass(frozen=True)
class MessagesReceived:
    messages: Tuple[InboundMessage, ...]


@dataclass(frozen=True)
class MessagesDeleted:
    """Deleted ids; ``chat_id`` is None when ids are account-wide."""

    chat_id: Optional[int]
    message_ids: Tuple[int, ...]


@dataclass(frozen=True)
class ConnectionClosed:
    error: Optional[BaseException] = None
