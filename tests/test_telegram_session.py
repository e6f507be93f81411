from __future__ import annotations

from types import SimpleNamespace

from telethon import errors

from adapters.telegram_session import (
    SessionFileStore,
    bootstrap_session_file,
    has_stored_login,
    is_fatal_telegram_error,
    session_file_path,
)
from core.errors import SessionInvalidError


class FakeSqliteSession:
    def __init__(self) -> None:
        self.saved = 0
        self.closed = 0

    def save(self) -> None:
        self.saved += 1

    def close(self) -> None:
        self.closed += 1


def test_session_file_path() -> None:
    assert session_file_path("lazarus") == "lazarus.session"
    assert session_file_path("lazarus.session") == "lazarus.session"


def test_fatal_telegram_errors() -> None:
    assert is_fatal_telegram_error(errors.AuthKeyUnregisteredError(request=None))
    assert is_fatal_telegram_error(errors.SessionRevokedError(request=None))
    assert is_fatal_telegram_error(errors.AuthKeyDuplicatedError(request=None))
    assert is_fatal_telegram_error(SessionInvalidError("gone"))
    assert not is_fatal_telegram_error(ConnectionError("reset"))
    assert not is_fatal_telegram_error(None)


def test_wipe_removes_session_files(tmp_path) -> None:
    name = str(tmp_path / "lazarus")
    (tmp_path / "lazarus.session").write_bytes(b"sqlite")
    (tmp_path / "lazarus.session-journal").write_bytes(b"journal")
    session = FakeSqliteSession()
    store = SessionFileStore(SimpleNamespace(session=session), name)

    store.persist()
    store.wipe()

    assert session.saved == 1
    assert session.closed == 1
    assert not (tmp_path / "lazarus.session").exists()
    assert not (tmp_path / "lazarus.session-journal").exists()


def test_bootstrap_skips_existing_session(tmp_path) -> None:
    (tmp_path / "lazarus.session").write_bytes(b"sqlite")

    assert not bootstrap_session_file(str(tmp_path / "lazarus"), "1abc")


def test_bootstrap_without_string_is_noop(tmp_path) -> None:
    assert not bootstrap_session_file(str(tmp_path / "lazarus"), None)
    assert not (tmp_path / "lazarus.session").exists()


def test_stored_login_follows_auth_key() -> None:
    assert has_stored_login(SimpleNamespace(session=SimpleNamespace(auth_key=b"key")))
    assert not has_stored_login(SimpleNamespace(session=SimpleNamespace(auth_key=None)))
