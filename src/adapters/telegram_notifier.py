"""Telegram owner notifier and media fetcher.

Every delivery goes to the owner's Saved Messages ("me"); recovered content
is never sent back to the chat it was deleted from.
"""

from __future__ import annotations

import io
import mimetypes
from typing import Optional

from core.errors import GatewayError, MediaTooLarge
from core.models import ContentKind, InboundMessage
from adapters.notification_formatting import (
    format_connected,
    format_recovered_text,
    format_recovery_header,
    format_reupload_failed,
    format_unrecovered,
    format_unsupported,
)

OWNER = "me"

_DEFAULT_NAMES = {
    ContentKind.IMAGE: "photo.jpg",
    ContentKind.VIDEO: "video.mp4",
    ContentKind.AUDIO: "audio.ogg",
    ContentKind.STICKER: "sticker.webp",
    ContentKind.DOCUMENT: "document.bin",
}


def upload_name(message: InboundMessage) -> str:
    """Pick a file name whose extension carries the original MIME type."""

    if message.file_name:
        return message.file_name
    if message.mime_type:
        extension = mimetypes.guess_extension(message.mime_type)
        if extension:
            return f"{message.kind.value}{extension}"
    return _DEFAULT_NAMES.get(message.kind, "file.bin")


def _document_attributes(message: InboundMessage) -> Optional[list]:
    document = getattr(message.payload, "document", None)
    attributes = getattr(document, "attributes", None)
    if not attributes:
        return None
    return list(attributes)


class TelegramOwnerNotifier:
    """Notifier adapter that sends owner notices to Saved Messages."""

    def __init__(self, client) -> None:
        self._client = client

    async def _send_text(self, text: str) -> None:
        await self._client.send_message(OWNER, text, parse_mode="html", link_preview=False)

    async def send_connected(self, status_saver: bool) -> None:
        await self._send_text(format_connected(status_saver))

    async def send_unrecovered(self, chat_id: Optional[int], message_id: int) -> None:
        await self._send_text(format_unrecovered(chat_id, message_id))

    async def send_recovered_text(self, message: InboundMessage) -> None:
        for chunk in format_recovered_text(message):
            await self._send_text(chunk)

    async def send_recovery_header(self, message: InboundMessage) -> None:
        await self._send_text(format_recovery_header(message))

    async def send_recovered_media(self, message: InboundMessage, data: bytes) -> None:
        buffer = io.BytesIO(data)
        # Telethon derives the MIME type and file name from the buffer name.
        buffer.name = upload_name(message)
        attributes = None if message.kind is ContentKind.IMAGE else _document_attributes(message)
        await self._client.send_file(
            OWNER,
            buffer,
            caption=message.text or None,
            parse_mode=None,
            force_document=message.kind is ContentKind.DOCUMENT,
            voice_note=bool(getattr(message.payload, "voice", None)),
            video_note=bool(getattr(message.payload, "video_note", None)),
            attributes=attributes,
        )

    async def send_unsupported(self, message: InboundMessage, preview: str) -> None:
        await self._send_text(format_unsupported(message, preview))

    async def send_reupload_failed(self, message: InboundMessage, error: BaseException) -> None:
        await self._send_text(format_reupload_failed(message, error))


class TelegramMediaFetcher:
    """Re-download cached media, refusing anything above the byte ceiling."""

    def __init__(self, client) -> None:
        self._client = client

    async def fetch(self, message: InboundMessage, max_bytes: int) -> bytes:
        payload = message.payload
        if message.kind is ContentKind.IMAGE:
            data = await self._client.download_media(payload, file=bytes)
            if data is None:
                raise GatewayError("photo is no longer available")
            if len(data) > max_bytes:
                raise MediaTooLarge(len(data), max_bytes)
            return data

        document = getattr(payload, "document", None)
        if document is None:
            raise GatewayError(f"cached {message.kind.value} has no document")

        buffer = bytearray()
        async for chunk in self._client.iter_download(document):
            if len(buffer) + len(chunk) > max_bytes:
                raise MediaTooLarge(len(buffer) + len(chunk), max_bytes)
            buffer.extend(chunk)
        return bytes(buffer)
