"""Exceptions raised by the core gateway."""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for gateway errors."""


class ConfigError(GatewayError):
    """Raised when a configured value is out of range."""


class SessionInvalidError(GatewayError):
    """Raised when the stored credentials are no longer accepted.

    This is the only connection error that is never retried in-process.
    """


class MediaTooLarge(GatewayError):
    """Raised when cached media exceeds the re-download ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"media is {size} bytes, limit is {limit}")
        self.size = size
        self.limit = limit
