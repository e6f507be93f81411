from __future__ import annotations

import asyncio
from email.message import Message

from adapters import commands
from adapters.commands import CommandHandler, format_duration
from core.models import CacheStats, ContentKind, InboundMessage


class FakeConnection:
    def __init__(self) -> None:
        self.edits: list[tuple[int, int, str]] = []

    async def edit_message(self, chat_id, message_id, text) -> None:
        self.edits.append((chat_id, message_id, text))


def _handler() -> CommandHandler:
    return CommandHandler(
        cache_stats=lambda: CacheStats(size=5, max_size=2000, hits=3, misses=1),
        started_at=0.0,
        clock=lambda: 3725.0,
    )


def _message(text: str, outgoing: bool = True) -> InboundMessage:
    return InboundMessage(chat_id=1, message_id=2, kind=ContentKind.TEXT, text=text, outgoing=outgoing)


def test_format_duration() -> None:
    assert format_duration(3725) == "1h 2m 5s"


def test_cache_command_reports_stats() -> None:
    connection = FakeConnection()

    asyncio.run(_handler().handle(connection, _message(".cache")))

    chat_id, message_id, text = connection.edits[0]
    assert (chat_id, message_id) == (1, 2)
    assert "5/2000" in text


def test_uptime_command() -> None:
    connection = FakeConnection()

    asyncio.run(_handler().handle(connection, _message(".uptime")))

    assert "1h 2m 5s" in connection.edits[0][2]


def test_incoming_and_plain_messages_are_ignored() -> None:
    handler = _handler()

    assert handler.parse(_message(".ping", outgoing=False)) is None
    assert handler.parse(_message("ping")) is None
    assert handler.parse(_message(".unknown")) is None
    assert handler.parse(_message(".PING now")) == "ping"


def test_repo_command_reports_package_metadata(monkeypatch) -> None:
    connection = FakeConnection()
    fields = Message()
    fields["Name"] = "lazarus"
    fields["Version"] = "0.1.0"
    fields["Summary"] = "Anti-delete gateway"
    fields["Project-URL"] = "Source, https://example.invalid/lazarus"
    monkeypatch.setattr(commands.metadata, "metadata", lambda name: fields)

    asyncio.run(_handler().handle(connection, _message(".repo")))

    text = connection.edits[0][2]
    assert "lazarus** 0.1.0" in text
    assert "Anti-delete gateway" in text
    assert "Source:** https://example.invalid/lazarus" in text


def test_repo_command_without_installed_package(monkeypatch) -> None:
    connection = FakeConnection()

    def missing(name):
        raise commands.metadata.PackageNotFoundError(name)

    monkeypatch.setattr(commands.metadata, "metadata", missing)

    asyncio.run(_handler().handle(connection, _message(".repository")))

    assert "source checkout" in connection.edits[0][2]
