"""Interactive login for the gateway account.

Only used on a fresh session: once the session file exists the connection
state machine reconnects without prompting.
"""

import asyncio
import logging
import os
from getpass import getpass
from typing import Callable, Optional

import qrcode
from telethon import TelegramClient, errors
from telethon.sessions import StringSession

LOGGER = logging.getLogger(__name__)

QR_TIMEOUT = 120
LOGIN_METHODS = {"1": "qr", "2": "phone"}


def _print_qr(url: str) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


def _two_factor_password() -> str:
    return os.getenv("2FA") or getpass("Two-step verification password: ")


async def _login_with_qr(client: TelegramClient, on_qr: Optional[Callable[[str], None]]) -> None:
    login = await client.qr_login()
    while True:
        _print_qr(login.url)
        if on_qr is not None:
            on_qr(login.url)
        try:
            await login.wait(timeout=QR_TIMEOUT)
            return
        except asyncio.TimeoutError:
            # QR tokens expire; show a fresh one until the user scans or quits.
            LOGGER.info("QR code expired, generating a new one")
            await login.recreate()


async def _login_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    sent = await client.send_code_request(phone)
    code = input("Code from Telegram: ").strip()
    await client.sign_in(phone=phone, code=code, phone_code_hash=sent.phone_code_hash)


def _choose_method() -> str:
    method = (os.getenv("LOGIN_METHOD") or "").strip().lower()
    if method in LOGIN_METHODS.values():
        return method

    print("\nHow do you want to link this account?")
    print("  1) scan a QR code from another device")
    print("  2) receive a login code by phone")
    print("  q) quit\n")
    while True:
        choice = input("lazarus > ").strip().lower()
        if choice == "q":
            raise SystemExit(0)
        if choice in LOGIN_METHODS:
            return LOGIN_METHODS[choice]
        print("Please answer 1, 2 or q.")


async def authorize(client: TelegramClient, on_qr: Optional[Callable[[str], None]] = None) -> None:
    """Log the client in unless the session is already authorized.

    ``on_qr`` receives every pairing URL shown to the user.
    """

    if await client.is_user_authorized():
        return

    try:
        if _choose_method() == "phone":
            await _login_with_phone(client)
        else:
            await _login_with_qr(client, on_qr)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_two_factor_password())

    me = await client.get_me()
    LOGGER.info("Authorized as %s", getattr(me, "username", None) or getattr(me, "id", "unknown"))


def export_string_session(client: TelegramClient) -> str:
    """Return the current session as a string usable for SESSION_STRING."""

    return StringSession.save(client.session)
