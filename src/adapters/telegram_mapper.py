"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core gateway. The original
Telethon message is kept as the opaque payload for media re-download and for
the fallback preview.
"""

from __future__ import annotations

from typing import Any, Optional

from telethon.tl.custom import Message
from telethon.tl.types import MessageMediaWebPage

from core.models import ContentKind, InboundMessage


def display_name(entity: Any) -> Optional[str]:
    """Return a readable name for a user, chat or channel entity."""

    if entity is None:
        return None
    title = getattr(entity, "title", None)
    if title:
        return str(title)
    first = getattr(entity, "first_name", None)
    last = getattr(entity, "last_name", None)
    if first or last:
        return " ".join(part for part in [first, last] if part)
    username = getattr(entity, "username", None)
    if username:
        return f"@{username}"
    return None


def content_kind(message: Message) -> ContentKind:
    """Classify the single content variant a message carries."""

    # Service messages (joins, pins, calls) only carry an action.
    if getattr(message, "action", None) is not None:
        return ContentKind.EMPTY

    # Stickers and voice notes are documents too, so check them first.
    if getattr(message, "sticker", None):
        return ContentKind.STICKER
    if getattr(message, "photo", None):
        return ContentKind.IMAGE
    if (
        getattr(message, "video", None)
        or getattr(message, "gif", None)
        or getattr(message, "video_note", None)
    ):
        return ContentKind.VIDEO
    if getattr(message, "audio", None) or getattr(message, "voice", None):
        return ContentKind.AUDIO
    if getattr(message, "document", None):
        return ContentKind.DOCUMENT

    media = getattr(message, "media", None)
    if media is None or isinstance(media, MessageMediaWebPage):
        return ContentKind.TEXT if (message.raw_text or "").strip() else ContentKind.EMPTY
    return ContentKind.OTHER


def build_inbound(message: Message) -> InboundMessage:
    """Build a core InboundMessage from a Telethon Message."""

    kind = content_kind(message)
    file_info = getattr(message, "file", None) if kind not in (ContentKind.TEXT, ContentKind.EMPTY) else None
    is_channel = bool(getattr(message, "is_channel", False))
    is_group = bool(getattr(message, "is_group", False))

    return InboundMessage(
        chat_id=message.chat_id,
        message_id=message.id,
        kind=kind,
        text=message.raw_text or "",
        sender_id=getattr(message, "sender_id", None),
        sender_label=display_name(getattr(message, "sender", None)),
        chat_label=display_name(getattr(message, "chat", None)),
        outgoing=bool(getattr(message, "out", False)),
        channel=is_channel,
        broadcast=is_channel and not is_group,
        mime_type=getattr(file_info, "mime_type", None),
        file_name=getattr(file_info, "name", None),
        file_size=getattr(file_info, "size", None),
        date=getattr(message, "date", None),
        payload=message,
    )
