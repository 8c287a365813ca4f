"""Tests for the admin CLI in main.py.

Covers:
- create-admin creates an admin, or promotes and resets an existing account
- set-password resets the hash and ends every session of the account
- purge-sessions removes only expired rows
- argument and password-length errors return a non-zero status
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.models import ROLE_ADMIN, ROLE_CLIENT, Account
from auth.store import SessionStore, UserStore
from auth.tokens import hash_password, verify_password
from main import main


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


def _open(db_url):
    return UserStore(db_url), SessionStore(db_url)


def test_create_admin(db_url, capsys):
    code = main(["--db-url", db_url, "create-admin", "--email", "Root@Example.com", "--password", "rootpass123"])
    assert code == 0
    assert "Created admin account root@example.com" in capsys.readouterr().out

    users, sessions = _open(db_url)
    try:
        account = users.get_by_email("root@example.com")
        assert account.role == ROLE_ADMIN
        assert account.name == "Administrator"
        assert verify_password("rootpass123", account.password)
    finally:
        sessions.close()
        users.close()


def test_create_admin_promotes_existing_account(db_url):
    users, sessions = _open(db_url)
    try:
        account_id = users.create_account(
            Account(name="Ops", email="ops@example.com", password=hash_password("oldpass123"), role=ROLE_CLIENT)
        )
        sessions.create("live", account_id, datetime.now(timezone.utc) + timedelta(days=1))
    finally:
        sessions.close()
        users.close()

    assert main(["--db-url", db_url, "create-admin", "--email", "ops@example.com", "--password", "newpass123"]) == 0

    users, sessions = _open(db_url)
    try:
        account = users.get_by_email("ops@example.com")
        assert account.role == ROLE_ADMIN
        assert account.name == "Ops"
        assert verify_password("newpass123", account.password)
        assert sessions.get("live") is None
    finally:
        sessions.close()
        users.close()


def test_set_password_ends_sessions(db_url, capsys):
    users, sessions = _open(db_url)
    try:
        account_id = users.create_account(
            Account(name="Ada", email="ada@example.com", password=hash_password("oldpass123"))
        )
        for sid in ("s1", "s2"):
            sessions.create(sid, account_id, datetime.now(timezone.utc) + timedelta(days=1))
    finally:
        sessions.close()
        users.close()

    assert main(["--db-url", db_url, "set-password", "--email", "ADA@example.com", "--password", "newpass123"]) == 0
    assert "2 session(s) ended" in capsys.readouterr().out

    users, sessions = _open(db_url)
    try:
        assert verify_password("newpass123", users.get_by_email("ada@example.com").password)
        assert sessions.get("s1") is None
        assert sessions.get("s2") is None
    finally:
        sessions.close()
        users.close()


def test_set_password_unknown_email(db_url, capsys):
    assert main(["--db-url", db_url, "set-password", "--email", "ghost@example.com", "--password", "newpass123"]) == 1
    assert "[!]" in capsys.readouterr().out


def test_short_password_rejected(db_url):
    assert main(["--db-url", db_url, "create-admin", "--email", "a@example.com", "--password", "short"]) == 1
    users = UserStore(db_url)
    try:
        assert users.has_users() is False
    finally:
        users.close()


def test_purge_sessions(db_url, capsys):
    sessions = SessionStore(db_url)
    try:
        sessions.create("old", 1, datetime.now(timezone.utc) - timedelta(hours=1))
        sessions.create("new", 1, datetime.now(timezone.utc) + timedelta(hours=1))
    finally:
        sessions.close()

    assert main(["--db-url", db_url, "purge-sessions"]) == 0
    assert "Purged 1 expired session(s)." in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "create-admin" in capsys.readouterr().out


def test_missing_required_argument_exits():
    with pytest.raises(SystemExit):
        main(["create-admin", "--email", "a@example.com"])
