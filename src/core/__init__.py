"""Core domain package for lazarus.

Core contains the cache, dispatch, recovery, connection and watchdog logic
without any Telegram-specific code, keeping the gateway testable with fakes.
"""
