"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from core.errors import ConfigError

EVICTION_POLICIES = ("oldest", "batch")


@dataclass(frozen=True)
class CacheConfig:
    """Recovery cache bounds and eviction policy."""

    max_size: int = 2000
    eviction: str = "oldest"
    batch_fraction: float = 0.2

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ConfigError("cache.max_size must be positive")
        if self.eviction not in EVICTION_POLICIES:
            raise ConfigError(f"cache.eviction must be one of {EVICTION_POLICIES}")
        if not 0 < self.batch_fraction <= 1:
            raise ConfigError("cache.batch_fraction must be in (0, 1]")


@dataclass(frozen=True)
class ReconnectConfig:
    """Exponential backoff settings for the connection state machine."""

    base_delay: float = 2.0
    growth: float = 1.5
    max_delay: float = 60.0
    max_attempts: int = 10
    jitter: float = 0.0
    connect_timeout: float = 30.0


@dataclass(frozen=True)
class DispatchConfig:
    """Ingress dispatch settings."""

    item_delay: float = 0.05
    cache_broadcasts: bool = True
    status_saver: bool = False


@dataclass(frozen=True)
class RecoveryConfig:
    """Deletion recovery settings."""

    min_interval: float = 1.5
    max_media_bytes: int = 50 * 1024 * 1024
    download_timeout: float = 120.0
    consume_on_recovery: bool = True


@dataclass(frozen=True)
class WatchdogConfig:
    """Memory watchdog thresholds, in megabytes of resident memory."""

    interval: float = 30.0
    warn_mb: float = 400.0
    critical_mb: float = 900.0
    trim_fraction: float = 0.2

    def __post_init__(self) -> None:
        if self.critical_mb <= self.warn_mb:
            raise ConfigError("watchdog.critical_mb must be above watchdog.warn_mb")


@dataclass(frozen=True)
class SessionConfig:
    """Session-level options applied once the connection opens."""

    auto_join: Tuple[str, ...] = ()
