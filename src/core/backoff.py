"""Reconnect backoff calculation."""

from __future__ import annotations

import random
from typing import Optional

from core.config import ReconnectConfig


def reconnect_delay(
    attempt: int,
    config: ReconnectConfig,
    rng: Optional[random.Random] = None,
) -> float:
    """Return the delay before reconnect attempt ``attempt`` (1-based).

    delay = min(base * growth ** (attempt - 1), max_delay), with optional
    multiplicative jitter applied after capping.
    """

    exponent = max(attempt, 1) - 1
    delay = min(config.base_delay * (config.growth ** exponent), config.max_delay)
    if config.jitter > 0:
        rng = rng or random
        delay = min(delay * (1 + rng.uniform(0, config.jitter)), config.max_delay)
    return delay
