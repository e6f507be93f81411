"""Broadcast-channel branch of the ingress dispatcher.

With the status saver enabled, new channel posts are marked as read so the
account shows up as a viewer. Normal chat traffic never passes through here.
"""

from __future__ import annotations

import logging

from core.models import InboundMessage

LOGGER = logging.getLogger(__name__)


class ChannelPostViewer:
    """StatusHandlerPort implementation that acknowledges channel posts."""

    def __init__(self, client) -> None:
        self._client = client

    async def handle(self, message: InboundMessage) -> None:
        await self._client.send_read_acknowledge(message.chat_id, max_id=message.message_id)
        LOGGER.debug("Viewed post %s in %s", message.message_id, message.chat_label or message.chat_id)
