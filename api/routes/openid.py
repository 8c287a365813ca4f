"""
api/routes/openid.py -- OpenID Connect login.

Routes:
  GET /api/auth/openid            -- redirect the browser to the issuer
  GET /api/auth/openid/callback   -- code exchange, account linking, session start

api/main.py includes this router only when the OIDC client is fully
configured, so with no issuer both paths are plain 404s.

Every failure in the callback (state mismatch, token exchange error, userinfo
fetch error, profile without a usable identity) ends in a 302 to /auth. No
partial account is created on any failure path.
"""

from __future__ import annotations

import logging

import httpx
from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from auth.dependencies import get_session_manager
from auth.oauth import PROVIDER_NAME, resolve_federated_account
from auth.store import UserStore
from core.config import get_settings

logger = logging.getLogger("itportal.api.openid")

router = APIRouter()

LOGIN_PAGE = "/auth"
HOME_PAGE = "/"


def _failed() -> RedirectResponse:
    return RedirectResponse(LOGIN_PAGE, status_code=302)


@router.get("/auth/openid")
async def openid_login(request: Request):
    """Redirect to the issuer's authorization endpoint.

    authlib stores the state value in the Starlette session before
    redirecting; the callback verifies it.
    """
    client = request.app.state.oauth.create_client(PROVIDER_NAME)
    return await client.authorize_redirect(request, get_settings().openid_redirect_uri)


@router.get("/auth/openid/callback", name="openid_callback")
async def openid_callback(request: Request) -> RedirectResponse:
    """Complete the authorization code flow and log the account in.

    Steps:
      1. Exchange the code for tokens (authlib also checks state).
      2. Use the id_token claims if present, else fetch userinfo.
      3. Find or provision the local account by effective email.
      4. Start a portal session and redirect home.
    """
    client = request.app.state.oauth.create_client(PROVIDER_NAME)
    user_store: UserStore = request.app.state.user_store

    # Step 1: code exchange
    try:
        token = await client.authorize_access_token(request)
    except (OAuthError, httpx.HTTPError):
        logger.exception("OpenID token exchange failed")
        return _failed()

    # Step 2: profile claims
    profile = token.get("userinfo")
    if not profile:
        try:
            profile = await client.userinfo(token=token)
        except (OAuthError, httpx.HTTPError):
            logger.exception("OpenID userinfo request failed")
            return _failed()

    # Step 3: account linking
    try:
        account = resolve_federated_account(user_store, dict(profile), profile.get("sub"))
    except ValueError:
        logger.warning("OpenID login rejected: profile has no usable identity")
        return _failed()

    # Step 4: session
    resp = RedirectResponse(HOME_PAGE, status_code=302)
    get_session_manager(request).login(request, resp, account)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    logger.info("OpenID login for account %s", account.id)
    return resp
