"""Default message handler: owner-only dot commands.

Only messages the account sent itself are treated as commands, and replies
are made by editing the command message in place.
"""

from __future__ import annotations

import logging
import platform
import time
from datetime import datetime, timezone
from importlib import metadata
from typing import Callable, Optional

import psutil

from core.models import CacheStats, ContentKind, InboundMessage

LOGGER = logging.getLogger(__name__)

PREFIX = "."
DISTRIBUTION = "lazarus"


def format_duration(seconds: float) -> str:
    seconds = int(max(seconds, 0))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}h {minutes}m {secs}s"


class CommandHandler:
    """MessageHandlerPort implementation for `.ping`, `.uptime`, `.cache` and `.repo`."""

    def __init__(
        self,
        cache_stats: Callable[[], CacheStats],
        started_at: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache_stats = cache_stats
        self._clock = clock
        self._started_at = started_at if started_at is not None else clock()
        self._commands = {
            "ping": self._ping,
            "uptime": self._uptime,
            "runtime": self._uptime,
            "cache": self._cache,
            "repo": self._repo,
            "repository": self._repo,
        }

    def parse(self, message: InboundMessage) -> Optional[str]:
        """Return the command name, or None when the message is not a command."""

        if not message.outgoing or message.kind is not ContentKind.TEXT:
            return None
        text = message.text.strip()
        if not text.startswith(PREFIX):
            return None
        name = text[len(PREFIX):].split(maxsplit=1)
        if not name:
            return None
        command = name[0].lower()
        return command if command in self._commands else None

    async def handle(self, connection, message: InboundMessage) -> None:
        command = self.parse(message)
        if command is None:
            return
        reply = self._commands[command](message)
        await connection.edit_message(message.chat_id, message.message_id, reply)
        LOGGER.info("Handled .%s in %s", command, message.chat_id)

    def _latency_ms(self, message: InboundMessage) -> int:
        if message.date is None:
            return 0
        delta = datetime.now(timezone.utc) - message.date
        return max(int(delta.total_seconds() * 1000), 0)

    def _ping(self, message: InboundMessage) -> str:
        return f"🏓 Pong! {self._latency_ms(message)} ms"

    def _uptime(self, message: InboundMessage) -> str:
        memory = psutil.virtual_memory()
        total_gb = memory.total / 1024 ** 3
        free_gb = memory.available / 1024 ** 3
        lines = [
            "⚙️ **Lazarus Status**",
            "",
            f"🕒 **Uptime:** {format_duration(self._clock() - self._started_at)}",
            f"⚡ **Latency:** {self._latency_ms(message)} ms",
            f"🖥 **CPU:** {platform.processor() or platform.machine() or 'Unknown CPU'}",
            f"🏗 **Platform:** {platform.system().upper() or 'Unknown'}",
            f"🛠 **RAM:** {free_gb:.2f} GB / {total_gb:.2f} GB",
        ]
        return "\n".join(lines)

    def _cache(self, message: InboundMessage) -> str:
        stats = self._cache_stats()
        return "\n".join(
            [
                "🗂 **Recovery cache**",
                f"Entries: {stats.size}/{stats.max_size}",
                f"Hits: {stats.hits}",
                f"Misses: {stats.misses}",
            ]
        )

    def _repo(self, message: InboundMessage) -> str:
        try:
            info = metadata.metadata(DISTRIBUTION)
        except metadata.PackageNotFoundError:
            return f"📦 **{DISTRIBUTION}** (running from a source checkout)"
        lines = [
            f"📦 **{info['Name']}** {info['Version']}",
            f"📝 {info.get('Summary') or 'No description provided'}",
            f"🐍 **Python:** {platform.python_version()}",
        ]
        for url in info.get_all("Project-URL") or []:
            label, _, target = url.partition(", ")
            lines.append(f"🔗 **{label}:** {target}")
        return "\n".join(lines)
