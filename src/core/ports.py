"""Ports (interfaces) used by the core gateway.

Ports define the minimal contracts for the session, credential, notification
and handler adapters so that the core can be exercised without Telegram.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from core.models import InboundMessage


class SessionPort(Protocol):
    """Socket lifecycle operations required by the connection state machine."""

    async def connect(self) -> None:
        ...

    async def wait_disconnected(self) -> None:
        ...

    async def join_channel(self, channel: str) -> None:
        ...


class CredentialStorePort(Protocol):
    def persist(self) -> None:
        ...

    def wipe(self) -> None:
        ...


class OwnerNotifierPort(Protocol):
    """Owner-directed deliveries. Nothing here ever targets the original chat."""

    async def send_connected(self, status_saver: bool) -> None:
        ...

    async def send_unrecovered(self, chat_id: Optional[int], message_id: int) -> None:
        ...

    async def send_recovered_text(self, message: InboundMessage) -> None:
        ...

    async def send_recovery_header(self, message: InboundMessage) -> None:
        ...

    async def send_recovered_media(self, message: InboundMessage, data: bytes) -> None:
        ...

    async def send_unsupported(self, message: InboundMessage, preview: str) -> None:
        ...

    async def send_reupload_failed(self, message: InboundMessage, error: BaseException) -> None:
        ...


class MediaFetcherPort(Protocol):
    async def fetch(self, message: InboundMessage, max_bytes: int) -> bytes:
        ...


class MessageHandlerPort(Protocol):
    """External message handler invoked once per normal-traffic message."""

    async def handle(self, connection: Any, message: InboundMessage) -> None:
        ...


class StatusHandlerPort(Protocol):
    async def handle(self, message: InboundMessage) -> None:
        ...
