"""Static configuration for lazarus.

Tunables live in an optional config.json at the project root; every value has
a fallback, so the gateway also runs with no file at all. A few options can be
overridden from the environment (.env is loaded via python-dotenv).
"""

import json
import os

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.getenv("LAZARUS_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json, treating a missing file as an empty config."""

    if not os.path.exists(CONFIG_PATH):
        return {}

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Session file name (Telethon appends ".session").
_session = _CONFIG.get("session", {})
SESSION_NAME = os.getenv("SESSION_NAME") or _session.get("name", "lazarus")
# Channels joined best-effort each time the connection opens.
AUTO_JOIN = tuple(_session.get("auto_join", []))

# Recovery cache bounds.
# - MAX_CACHE: entries kept for anti-delete
# - CACHE_EVICTION: "oldest" (one per overflow) or "batch" (oldest fraction)
_cache = _CONFIG.get("cache", {})
MAX_CACHE = _env_int("MAX_CACHE", int(_cache.get("max_size", 2000)))
CACHE_EVICTION = _cache.get("eviction", "oldest")
CACHE_BATCH_FRACTION = float(_cache.get("batch_fraction", 0.2))

# Reconnect backoff: delay = min(base * growth ** (attempt - 1), max_delay).
_reconnect = _CONFIG.get("reconnect", {})
RECONNECT_BASE_DELAY = float(_reconnect.get("base_delay", 2.0))
RECONNECT_GROWTH = float(_reconnect.get("growth", 1.5))
RECONNECT_MAX_DELAY = float(_reconnect.get("max_delay", 60.0))
RECONNECT_MAX_ATTEMPTS = int(_reconnect.get("max_attempts", 10))
RECONNECT_JITTER = float(_reconnect.get("jitter", 0.0))
CONNECT_TIMEOUT = float(_reconnect.get("connect_timeout", 30.0))

# Ingress dispatch. STATUS_SAVER marks broadcast channel posts as viewed.
_dispatch = _CONFIG.get("dispatch", {})
DISPATCH_ITEM_DELAY = float(_dispatch.get("item_delay", 0.05))
CACHE_BROADCASTS = bool(_dispatch.get("cache_broadcasts", True))
STATUS_SAVER = _env_bool("STATUS_SAVER", bool(_dispatch.get("status_saver", False)))

# Deletion recovery pacing and media ceiling.
_recovery = _CONFIG.get("recovery", {})
RECOVERY_MIN_INTERVAL = float(_recovery.get("min_interval", 1.5))
RECOVERY_MAX_MEDIA_BYTES = int(_recovery.get("max_media_mb", 50)) * 1024 * 1024
RECOVERY_DOWNLOAD_TIMEOUT = float(_recovery.get("download_timeout", 120.0))
RECOVERY_CONSUME = bool(_recovery.get("consume_on_recovery", True))

# Memory watchdog, thresholds in MB of resident memory.
_watchdog = _CONFIG.get("watchdog", {})
WATCHDOG_INTERVAL = float(_watchdog.get("interval", 30.0))
WATCHDOG_WARN_MB = float(_watchdog.get("warn_mb", 400))
WATCHDOG_CRITICAL_MB = float(_watchdog.get("critical_mb", 900))
WATCHDOG_TRIM_FRACTION = float(_watchdog.get("trim_fraction", 0.2))

# Logging configuration (optional). LOG_LEVEL overrides the configured level.
LOGGING = dict(_CONFIG.get("logging", {}))
if os.getenv("LOG_LEVEL"):
    LOGGING["level"] = os.getenv("LOG_LEVEL")
