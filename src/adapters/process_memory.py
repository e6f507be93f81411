"""Process memory sampling via psutil."""

from __future__ import annotations

import psutil

_PROCESS = psutil.Process()


def rss_megabytes() -> float:
    """Return this process's resident set size in megabytes."""

    return _PROCESS.memory_info().rss / (1024 * 1024)
