"""
api/routes/auth.py -- Registration, login, session and password endpoints.

Routes:
  POST /api/register          -- create a client account; starts a session
  POST /api/login             -- email-or-username + password; sets session cookie
  POST /api/logout            -- destroys the server-side session; 200 empty body
  GET  /api/user              -- current account (requires session)
  POST /api/change-password   -- verify current password, store new hash (requires session)
  GET  /api/auth/providers    -- enabled federated providers (public)

Security:
  [H2] POST /login is rate-limited per client address (LOGIN_RATE_LIMIT).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on responses that set or carry credentials.
  Unknown identifier and wrong password produce byte-identical 401 bodies.
  Account responses never include the password field.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    AccountResponse,
    ChangePasswordRequest,
    ChangePasswordResponse,
    LoginRequest,
    OAuthProviderInfo,
    RegisterRequest,
)
from auth.dependencies import get_current_user, get_session_manager
from auth.models import ROLE_CLIENT, Account
from auth.oauth import get_enabled_providers
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import authenticate_user, hash_password, verify_password
from core.errors import AuthenticationError

logger = logging.getLogger("itportal.api.auth")

# Auth policy:
# - POST /api/register:        public
# - POST /api/login:           public, rate limited
# - POST /api/logout:          public -- destroying a session needs no prior check
# - GET  /api/user:            requires session (get_current_user)
# - POST /api/change-password: requires session (get_current_user)
# - GET  /api/auth/providers:  public -- login page renders SSO button from it
router = APIRouter()

_BAD_CREDENTIALS = {"error": {"code": "bad_credentials", "message": "Invalid username or password."}}


def _account_json(account: Account) -> dict:
    return AccountResponse.from_account(account).model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AccountResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a client account and log it in.

    Duplicate email or username surfaces as 400 via ConflictError.
    """
    user_store: UserStore = request.app.state.user_store
    sessions: SessionManager = get_session_manager(request)

    account_id = user_store.create_account(
        Account(
            name=body.name,
            email=body.email,
            username=body.username,
            password=hash_password(body.password),
            role=ROLE_CLIENT,
        )
    )
    account = user_store.get_by_id(account_id)
    if account is None:
        raise RuntimeError("Account not found after write")
    logger.info("Registered account %s", account.id)

    resp = JSONResponse(status_code=201, content=_account_json(account))
    sessions.login(request, resp, account)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/login", response_model=AccountResponse)
@limiter.limit(login_rate_limit)  # [H2] must be BELOW @router so the route registers the wrapper
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email-or-username and password; start a session.

    Returns the same generic 401 for unknown identifier and wrong password,
    and creates no session in either case.
    """
    user_store: UserStore = request.app.state.user_store
    account = authenticate_user(user_store, body.username, body.password)
    if account is None:
        logger.info("Login rejected")
        resp = JSONResponse(status_code=401, content=_BAD_CREDENTIALS)
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    resp = JSONResponse(status_code=200, content=_account_json(account))
    get_session_manager(request).login(request, resp, account)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/logout")
def logout(request: Request) -> Response:
    """Destroy the session server-side and clear the cookie."""
    resp = Response(status_code=200)
    get_session_manager(request).logout(request, resp)
    return resp


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
def list_providers() -> list[OAuthProviderInfo]:
    """Return the configured federated providers (empty when OIDC is off)."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers()]


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/user", response_model=AccountResponse)
def current_user(response: Response, account: Account = Depends(get_current_user)) -> AccountResponse:
    """Return the account behind the current session."""
    response.headers["Cache-Control"] = "no-store"
    return AccountResponse.from_account(account)


@router.post("/change-password", response_model=ChangePasswordResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    account: Account = Depends(get_current_user),
) -> ChangePasswordResponse:
    """Replace the caller's password after checking the current one.

    Every other session of the account is destroyed; the session making the
    request stays valid.
    """
    user_store: UserStore = request.app.state.user_store
    sessions: SessionManager = get_session_manager(request)

    if not verify_password(body.current_password, account.password):
        raise AuthenticationError("Current password is incorrect", code="wrong_password")

    user_store.update_password(account.id, hash_password(body.new_password))
    removed = sessions.destroy_account_sessions(account.id, keep_sid=sessions.current_sid(request))
    logger.info("Password changed for account %s (%d other session(s) ended)", account.id, removed)
    return ChangePasswordResponse()
