#!/usr/bin/env python3
"""
IT portal admin CLI -- account and session maintenance without the web UI.

Usage:
  python main.py create-admin --email admin@example.com --password '...'
  python main.py create-admin --email admin@example.com --password '...' --name "Ops" --username ops
  python main.py set-password --email ada@example.com --password '...'
  python main.py purge-sessions
  python main.py --db-url sqlite:///other.db purge-sessions

Environment variables:
  DATABASE_URL  Database to operate on (same setting the server reads).
                --db-url overrides it.
"""

import argparse
import sys
from typing import Optional

from auth.models import ROLE_ADMIN, Account
from auth.store import SessionStore, UserStore
from auth.tokens import hash_password
from core.config import get_settings
from core.errors import ConflictError

MIN_PASSWORD_LENGTH = 8


def _check_password(password: str) -> bool:
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"  [!] Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        return False
    return True


def create_admin(db_url: str, email: str, password: str, name: Optional[str], username: Optional[str]) -> int:
    """Create an admin account, or promote and reset an existing one."""
    if not _check_password(password):
        return 1
    users = UserStore(db_url)
    sessions = SessionStore(db_url)
    try:
        existing = users.get_by_email(email)
        if existing is not None:
            users.update_password(existing.id, hash_password(password))
            users.update_role(existing.id, ROLE_ADMIN)
            ended = sessions.delete_for_account(existing.id)
            print(f"  Updated {existing.email}: role=admin, password reset, {ended} session(s) ended.")
            return 0
        try:
            account_id = users.create_account(
                Account(
                    name=name or "Administrator",
                    email=email.lower(),
                    username=username or None,
                    password=hash_password(password),
                    role=ROLE_ADMIN,
                )
            )
        except ConflictError as exc:
            print(f"  [!] {exc.message}")
            return 1
        print(f"  Created admin account {email.lower()} (id {account_id}).")
        return 0
    finally:
        sessions.close()
        users.close()


def set_password(db_url: str, email: str, password: str) -> int:
    """Reset an account's password and end all of its sessions."""
    if not _check_password(password):
        return 1
    users = UserStore(db_url)
    sessions = SessionStore(db_url)
    try:
        account = users.get_by_email(email)
        if account is None:
            print(f"  [!] No account with email '{email}'.")
            return 1
        users.update_password(account.id, hash_password(password))
        ended = sessions.delete_for_account(account.id)
        print(f"  Password updated for {account.email}; {ended} session(s) ended.")
        return 0
    finally:
        sessions.close()
        users.close()


def purge_sessions(db_url: str) -> int:
    """Delete expired session rows."""
    sessions = SessionStore(db_url)
    try:
        removed = sessions.purge_expired()
    finally:
        sessions.close()
    print(f"  Purged {removed} expired session(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="itportal-admin",
        description="Account and session maintenance for the IT portal.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --email admin@example.com --password 'long-password'
  python main.py set-password --email ada@example.com --password 'new-password'
  python main.py purge-sessions
        """,
    )
    parser.add_argument(
        "--db-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL from the environment)",
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin = commands.add_parser("create-admin", help="Create an admin, or promote an existing account")
    admin.add_argument("--email", required=True, help="Account email (case-insensitive)")
    admin.add_argument("--password", required=True, help=f"New password, at least {MIN_PASSWORD_LENGTH} characters")
    admin.add_argument("--name", default=None, help="Display name for a new account")
    admin.add_argument("--username", default=None, help="Optional login username for a new account")

    reset = commands.add_parser("set-password", help="Reset a password and end the account's sessions")
    reset.add_argument("--email", required=True, help="Account email (case-insensitive)")
    reset.add_argument("--password", required=True, help=f"New password, at least {MIN_PASSWORD_LENGTH} characters")

    commands.add_parser("purge-sessions", help="Delete expired sessions")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    db_url = args.db_url or get_settings().database_url

    if args.command == "create-admin":
        return create_admin(db_url, args.email, args.password, args.name, args.username)
    if args.command == "set-password":
        return set_password(db_url, args.email, args.password)
    return purge_sessions(db_url)


if __name__ == "__main__":
    sys.exit(main())
