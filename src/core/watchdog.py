"""Resident memory watchdog.

Trims the recovery cache when memory passes the warning threshold and exits
the process when it passes the critical one, leaving the restart to the
process supervisor.
"""

from __future__ import annotations

import asyncio
import gc
import logging
from typing import Callable

from core.cache import RecoveryCache
from core.config import WatchdogConfig
from core.models import EXIT_CRITICAL_MEMORY

LOGGER = logging.getLogger(__name__)


class MemoryWatchdog:
    def __init__(
        self,
        cache: RecoveryCache,
        sampler: Callable[[], float],
        config: WatchdogConfig,
        exit_process: Callable[[int], None],
    ) -> None:
        self._cache = cache
        self._sampler = sampler
        self._config = config
        self._exit_process = exit_process

    @property
    def trim_target(self) -> int:
        return int(self._cache.max_size * self._config.trim_fraction)

    def tick(self) -> float:
        """Take one sample and react to it. Returns the sampled RSS in MB."""

        rss_mb = self._sampler()
        if rss_mb > self._config.critical_mb:
            LOGGER.critical(
                "Resident memory %.1f MB is above %.1f MB, exiting",
                rss_mb,
                self._config.critical_mb,
            )
            self._exit_process(EXIT_CRITICAL_MEMORY)
            return rss_mb

        if rss_mb > self._config.warn_mb:
            LOGGER.warning(
                "Resident memory %.1f MB is above %.1f MB, trimming cache to %s",
                rss_mb,
                self._config.warn_mb,
                self.trim_target,
            )
            self._cache.trim(self.trim_target)
            gc.collect()
        return rss_mb

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self._config.interval)
            try:
                self.tick()
            except Exception:
                LOGGER.exception("Memory sample failed")
