"""Telethon adapters that implement the core ports."""
