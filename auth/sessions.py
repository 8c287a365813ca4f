"""
auth/sessions.py -- Server-side session manager.

SessionManager is built once in the application lifespan and stored on
app.state; handlers reach it through auth.dependencies. Nothing here is a
module-level singleton, so tests construct it directly around in-memory
stores.

Flow:
  login()   -- new session row holding only the account id, signed cookie out.
  resolve() -- cookie -> signature check -> session row -> fresh Account from
               the UserStore. Role changes apply on the next request, not at
               the next login.
  logout()  -- delete the row (not just the cookie). A copied cookie for a
               logged-out session no longer resolves.

Cookie attributes:
  httponly=True: JS cannot read the cookie (XSS mitigation).
  samesite="lax": sent on same-site navigations and top-level GETs, not on
      cross-site POST.
  secure: set when SECURE_COOKIES=true, or when the request came in over TLS,
      including via a TLS-terminating proxy when TRUST_PROXY=true.
  max_age: the session lifetime (7 days by default).

Layer rule: no imports from api/, catalog/, or sharing/.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from starlette.requests import Request
from starlette.responses import Response

from auth.models import Account
from auth.store import SessionStore, UserStore
from auth.tokens import decode_session_token, encode_session_token
from core.config import SEVEN_DAYS_SECONDS

logger = logging.getLogger("itportal.auth.sessions")

SESSION_COOKIE = "itportal.sid"


class SessionManager:
    """Mint, resolve and destroy sessions backed by a shared SessionStore."""

    def __init__(
        self,
        sessions: SessionStore,
        users: UserStore,
        secret_key: str,
        *,
        max_age_seconds: int = SEVEN_DAYS_SECONDS,
        secure_cookies: bool = False,
        trust_proxy: bool = True,
    ) -> None:
        self.sessions = sessions
        self.users = users
        self._secret_key = secret_key
        self.max_age_seconds = max_age_seconds
        self.secure_cookies = secure_cookies
        self.trust_proxy = trust_proxy

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def login(self, request: Request, response: Response, account: Account) -> str:
        """Create a session for account and attach its cookie to response.

        Any session already carried by the request is destroyed first, so a
        session id planted before login is never promoted to an authenticated
        one. Returns the new session id.
        """
        previous = self._sid_from_request(request)
        if previous is not None:
            self.sessions.delete(previous)

        sid = secrets.token_urlsafe(48)  # 64 chars
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.max_age_seconds)
        self.sessions.create(sid, account.id, expires_at)
        response.set_cookie(
            SESSION_COOKIE,
            value=encode_session_token(sid, expires_at, self._secret_key),
            max_age=self.max_age_seconds,
            httponly=True,
            samesite="lax",
            secure=self._cookie_secure(request),
        )
        logger.info("Session created for account %s", account.id)
        return sid

    def resolve(self, request: Request) -> Account | None:
        """Return the Account behind the request's session cookie, or None."""
        sid = self._sid_from_request(request)
        if sid is None:
            return None
        record = self.sessions.get(sid)
        if record is None:
            return None
        account = self.users.get_by_id(record.account_id)
        if account is None:
            # Account deleted while the session was alive.
            self.sessions.delete(sid)
        return account

    def current_sid(self, request: Request) -> str | None:
        return self._sid_from_request(request)

    def logout(self, request: Request, response: Response) -> None:
        """Destroy the server-side session and clear the cookie."""
        sid = self._sid_from_request(request)
        if sid is not None and self.sessions.delete(sid):
            logger.info("Session destroyed")
        response.delete_cookie(SESSION_COOKIE, httponly=True, samesite="lax")

    def destroy_account_sessions(self, account_id: int, *, keep_sid: str | None = None) -> int:
        """Invalidate every session of account_id, optionally sparing one."""
        return self.sessions.delete_for_account(account_id, keep_sid=keep_sid)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _sid_from_request(self, request: Request) -> str | None:
        token = request.cookies.get(SESSION_COOKIE)
        if not token:
            return None
        return decode_session_token(token, self._secret_key)

    def _cookie_secure(self, request: Request) -> bool:
        if self.secure_cookies or request.url.scheme == "https":
            return True
        if self.trust_proxy:
            forwarded = request.headers.get("x-forwarded-proto", "")
            return forwarded.split(",")[0].strip().lower() == "https"
        return False
