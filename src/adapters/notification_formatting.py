"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps owner
notices consistent. Bodies are Telegram HTML, sent with parse_mode="html";
anything taken from a chat goes through html.escape so it arrives verbatim.
"""

from __future__ import annotations

import html
from typing import Optional

from core.models import InboundMessage

MAX_MESSAGE_LENGTH = 4096
# Room kept in the first chunk for the recovery header.
HEADER_ALLOWANCE = 512
DIVIDER = "──────────────"


def format_chat_label(chat_id: Optional[int], chat_label: Optional[str] = None) -> str:
    if chat_id is None:
        return chat_label or "a private chat"
    if chat_label:
        return f"{chat_label} ({chat_id})"
    return str(chat_id)


def format_sender_label(message: InboundMessage) -> str:
    if message.sender_label and message.sender_id is not None:
        return f"{message.sender_label} ({message.sender_id})"
    if message.sender_label:
        return message.sender_label
    if message.sender_id is not None:
        return str(message.sender_id)
    return format_chat_label(message.chat_id, message.chat_label)


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into Telegram-sized chunks, preferring line breaks."""

    chunks: list[str] = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")
    if text or not chunks:
        chunks.append(text)
    return chunks


def format_connected(status_saver: bool) -> str:
    state = "ENABLED" if status_saver else "DISABLED"
    return "\n".join(
        [
            "✅ <b>Lazarus is now connected!</b>",
            "",
            "Anti-delete and command handling are active.",
            f"Status saver: {state}",
        ]
    )


def format_unrecovered(chat_id: Optional[int], message_id: int) -> str:
    chat = html.escape(format_chat_label(chat_id))
    return f"🚨 A message was deleted in <b>{chat}</b>, but it could not be recovered. (id {message_id})"


def format_recovery_header(message: InboundMessage) -> str:
    sender = html.escape(format_sender_label(message))
    chat = html.escape(format_chat_label(message.chat_id, message.chat_label))
    lines = [
        "🚨 <b>Anti-Delete Triggered!</b>",
        f"👤 <b>Sender:</b> {sender}",
        f"💬 <b>Chat:</b> {chat}",
    ]
    if message.date is not None:
        timestamp = message.date.astimezone().strftime("%H:%M:%S %d-%m-%Y")
        lines.append(f"🕒 <b>Sent:</b> {timestamp}")
    return "\n".join(lines)


def format_recovered_text(message: InboundMessage) -> list[str]:
    """Header and recovered text as one message, split only when too long.

    The text is split before escaping, so no chunk cuts through an entity.
    """

    parts = split_message(message.text, MAX_MESSAGE_LENGTH - HEADER_ALLOWANCE)
    chunks = [html.escape(part) for part in parts]
    chunks[0] = "\n".join([format_recovery_header(message), DIVIDER, chunks[0]])
    return chunks


def format_unsupported(message: InboundMessage, preview: str) -> str:
    header = format_recovery_header(message)
    intro = f"📦 Recovered (unsupported type: {html.escape(message.kind.value)}). Content preview:"
    preview = split_message(preview, MAX_MESSAGE_LENGTH - HEADER_ALLOWANCE)[0]
    return f"{header}\n{intro}\n<pre>{html.escape(preview)}</pre>"


def format_reupload_failed(message: InboundMessage, error: BaseException) -> str:
    chat = html.escape(format_chat_label(message.chat_id, message.chat_label))
    reason = html.escape(str(error) or type(error).__name__)
    return f"⚠️ Recovered {message.kind.value} from <b>{chat}</b> could not be reuploaded: {reason}"
