from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

from telethon.tl.types import MessageMediaWebPage, WebPageEmpty

from adapters.telegram_mapper import build_inbound, content_kind, display_name
from core.models import ContentKind


class DummyMessage:
    def __init__(
        self,
        *,
        chat_id: int = -100123,
        message_id: int = 10,
        text: str = "",
        media=None,
        out: bool = False,
        is_channel: bool = False,
        is_group: bool = False,
        sender=None,
        chat=None,
        file=None,
        **variants,
    ) -> None:
        self.chat_id = chat_id
        self.id = message_id
        self.raw_text = text
        self.media = media
        self.out = out
        self.is_channel = is_channel
        self.is_group = is_group
        self.sender = sender
        self.sender_id = getattr(sender, "id", None)
        self.chat = chat
        self.file = file
        self.action = variants.pop("action", None)
        self.date = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for name in ("photo", "video", "gif", "video_note", "audio", "voice", "sticker", "document"):
            setattr(self, name, variants.get(name))


def test_plain_text_is_text() -> None:
    assert content_kind(DummyMessage(text="hello")) is ContentKind.TEXT


def test_link_preview_counts_as_text() -> None:
    media = MessageMediaWebPage(webpage=WebPageEmpty(id=1))
    assert content_kind(DummyMessage(text="see https://example.com", media=media)) is ContentKind.TEXT


def test_service_and_blank_messages_are_empty() -> None:
    assert content_kind(DummyMessage(action=object())) is ContentKind.EMPTY
    assert content_kind(DummyMessage(text="   ")) is ContentKind.EMPTY


def test_sticker_wins_over_document() -> None:
    document = object()
    message = DummyMessage(media=object(), sticker=document, document=document)
    assert content_kind(message) is ContentKind.STICKER


def test_voice_note_is_audio() -> None:
    document = object()
    message = DummyMessage(media=object(), voice=document, document=document)
    assert content_kind(message) is ContentKind.AUDIO


def test_unknown_media_is_other() -> None:
    assert content_kind(DummyMessage(media=object())) is ContentKind.OTHER


def test_build_inbound_for_document() -> None:
    file_info = SimpleNamespace(mime_type="application/pdf", name="report.pdf", size=2048)
    sender = SimpleNamespace(id=77, first_name="Ada", last_name="Lovelace")
    chat = SimpleNamespace(title="Team")
    message = DummyMessage(
        text="quarterly",
        media=object(),
        document=object(),
        file=file_info,
        sender=sender,
        chat=chat,
        is_channel=True,
        is_group=True,
    )

    inbound = build_inbound(message)

    assert inbound.key == (-100123, 10)
    assert inbound.kind is ContentKind.DOCUMENT
    assert inbound.text == "quarterly"
    assert inbound.mime_type == "application/pdf"
    assert inbound.file_name == "report.pdf"
    assert inbound.file_size == 2048
    assert inbound.sender_label == "Ada Lovelace"
    assert inbound.chat_label == "Team"
    assert inbound.channel
    assert not inbound.broadcast
    assert inbound.payload is message


def test_broadcast_channel_post_is_flagged() -> None:
    inbound = build_inbound(DummyMessage(text="news", is_channel=True, is_group=False))
    assert inbound.broadcast


def test_display_name_fallbacks() -> None:
    assert display_name(None) is None
    assert display_name(SimpleNamespace(username="ghost")) == "@ghost"
    assert display_name(SimpleNamespace(first_name="Solo")) == "Solo"
