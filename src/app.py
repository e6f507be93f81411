"""Application entry point for the lazarus gateway."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from telethon import events

import settings
from adapters.commands import CommandHandler
from adapters.process_memory import rss_megabytes
from adapters.status_viewer import ChannelPostViewer
from adapters.telegram_mapper import build_inbound
from adapters.telegram_notifier import TelegramMediaFetcher, TelegramOwnerNotifier
from adapters.telegram_session import (
    SessionFileStore,
    TelegramSession,
    has_stored_login,
    is_fatal_telegram_error,
)
from client import build_client
from core.config import (
    CacheConfig,
    DispatchConfig,
    ReconnectConfig,
    RecoveryConfig,
    SessionConfig,
    WatchdogConfig,
)
from core.events import MessagesDeleted, MessagesReceived
from core.session import GatewaySession
from get_session import authorize, export_string_session

NAME = "LAZARUS"
FONT = "tarty-1"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
# Environment variables whose values never appear in log output.
SECRET_ENV_VARS = ("API_HASH", "SESSION_STRING", "2FA", "PHONE")


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _MaskingFormatter(logging.Formatter):
    """Formatter that masks known secret values in the rendered line."""

    def __init__(self, secrets: list[str]) -> None:
        super().__init__(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
        # Longest first, so a secret containing another is masked whole.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        rendered = super().format(record)
        for secret in self._secrets:
            rendered = rendered.replace(secret, "[redacted]")
        return rendered


def _secret_values(config: dict) -> list[str]:
    masking = config.get("redact", {})
    if not masking.get("enabled", True):
        return []
    names = masking.get("patterns", SECRET_ENV_VARS)
    return [os.environ[name] for name in names if os.environ.get(name)]


def _log_file_handler(file_config: dict) -> RotatingFileHandler:
    target = file_config.get("path", "logs/lazarus.log")
    if not os.path.isabs(target):
        target = os.path.join(settings.PROJECT_ROOT, target)
    os.makedirs(os.path.dirname(target) or ".", exist_ok=True)
    return RotatingFileHandler(
        target,
        maxBytes=int(file_config.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_config.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    level = logging.getLevelName(str(config.get("level", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_config = config.get("file", {})
    if file_config.get("enabled", False):
        handlers.append(_log_file_handler(file_config))
    if not handlers:
        return

    formatter = _MaskingFormatter(_secret_values(config))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers)
    # Telethon logs every reconnect internally; our state machine reports those.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _terminate(code: int) -> None:
    """Exit immediately; the process supervisor is expected to restart us."""

    logging.getLogger(__name__).critical("Exiting with code %s", code)
    logging.shutdown()
    os._exit(code)


def _build_session(client) -> GatewaySession:
    handler = CommandHandler(cache_stats=lambda: session.cache.stats())

    session = GatewaySession(
        session=TelegramSession(client),
        credentials=SessionFileStore(client, settings.SESSION_NAME),
        notifier=TelegramOwnerNotifier(client),
        fetcher=TelegramMediaFetcher(client),
        handler=handler,
        memory_sampler=rss_megabytes,
        exit_process=_terminate,
        connection_handle=client,
        status_handler=ChannelPostViewer(client),
        cache_config=CacheConfig(
            max_size=settings.MAX_CACHE,
            eviction=settings.CACHE_EVICTION,
            batch_fraction=settings.CACHE_BATCH_FRACTION,
        ),
        dispatch_config=DispatchConfig(
            item_delay=settings.DISPATCH_ITEM_DELAY,
            cache_broadcasts=settings.CACHE_BROADCASTS,
            status_saver=settings.STATUS_SAVER,
        ),
        recovery_config=RecoveryConfig(
            min_interval=settings.RECOVERY_MIN_INTERVAL,
            max_media_bytes=settings.RECOVERY_MAX_MEDIA_BYTES,
            download_timeout=settings.RECOVERY_DOWNLOAD_TIMEOUT,
            consume_on_recovery=settings.RECOVERY_CONSUME,
        ),
        reconnect_config=ReconnectConfig(
            base_delay=settings.RECONNECT_BASE_DELAY,
            growth=settings.RECONNECT_GROWTH,
            max_delay=settings.RECONNECT_MAX_DELAY,
            max_attempts=settings.RECONNECT_MAX_ATTEMPTS,
            jitter=settings.RECONNECT_JITTER,
            connect_timeout=settings.CONNECT_TIMEOUT,
        ),
        watchdog_config=WatchdogConfig(
            interval=settings.WATCHDOG_INTERVAL,
            warn_mb=settings.WATCHDOG_WARN_MB,
            critical_mb=settings.WATCHDOG_CRITICAL_MB,
            trim_fraction=settings.WATCHDOG_TRIM_FRACTION,
        ),
        session_config=SessionConfig(auto_join=settings.AUTO_JOIN),
        is_fatal=is_fatal_telegram_error,
    )
    return session


def _register_handlers(client, session: GatewaySession) -> None:
    """Turn Telethon callbacks into events on the session channel."""

    logger = logging.getLogger(__name__)

    @client.on(events.NewMessage())
    async def on_new_message(event) -> None:
        try:
            session.publish(MessagesReceived((build_inbound(event.message),)))
        except Exception:
            logger.exception("Error while mapping new message")

    @client.on(events.MessageDeleted())
    async def on_message_deleted(event) -> None:
        try:
            session.publish(MessagesDeleted(event.chat_id, tuple(event.deleted_ids or ())))
        except Exception:
            logger.exception("Error while mapping deleted messages")


async def _login(client, session: Optional[GatewaySession] = None) -> None:
    on_qr = session.connection.handle_pairing_available if session is not None else None
    await asyncio.wait_for(client.connect(), timeout=settings.CONNECT_TIMEOUT)
    await authorize(client, on_qr=on_qr)


async def _serve(client, session: GatewaySession) -> None:
    # Interactive login only happens on a fresh session; otherwise the
    # connection state machine owns the first connect and every reconnect.
    if not has_stored_login(client):
        await _login(client, session)
    await session.run()


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info(
        "Starting lazarus: cache %s entries (%s eviction), status saver %s",
        settings.MAX_CACHE,
        settings.CACHE_EVICTION,
        "on" if settings.STATUS_SAVER else "off",
    )

    client = build_client(settings.SESSION_NAME)
    session = _build_session(client)
    _register_handlers(client, session)

    try:
        client.loop.run_until_complete(_serve(client, session))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        session.close()
        client.loop.run_until_complete(client.disconnect())


def _with_login(action) -> None:
    """Log in on a one-off client, run ``action`` on it, then disconnect."""

    client = build_client(settings.SESSION_NAME)

    async def _session() -> None:
        try:
            await _login(client)
            action(client)
        finally:
            await client.disconnect()

    client.loop.run_until_complete(_session())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="lazarus",
        description="Telegram gateway that recovers deleted messages into Saved Messages.",
    )
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("run", help="connect and serve until stopped (default)")
    commands.add_parser("login", help="link the account and write the session file")
    commands.add_parser("export-session", help="print a string session for SESSION_STRING")

    args = parser.parse_args(argv)
    if args.command == "login":
        _print_banner()
        _configure_logging()
        _with_login(lambda client: None)
    elif args.command == "export-session":
        _with_login(lambda client: print(export_string_session(client)))
    else:
        _run()


if __name__ == "__main__":
    main()
