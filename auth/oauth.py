"""
auth/oauth.py -- Authlib OpenID Connect configuration and account linking.

Reads configuration from core.config.get_settings() at module load. The
provider is registered only when OPENID_ISSUER_URL, OPENID_CLIENT_ID and
OPENID_CLIENT_SECRET are all set; api/main.py applies the same test to decide
whether the /api/auth/openid routes exist at all.

OAuth state parameter (CSRF protection) is handled by authlib automatically
via Starlette SessionMiddleware, which stores the state between the
authorization redirect and the callback.

Account linking policy (resolve_federated_account):
  - Effective identity: profile email, else preferred_username, else the
    issuer's subject -- first non-empty value wins.
  - An existing account with that email is reused as-is (role and password
    untouched).
  - Otherwise a "client" account is provisioned whose password is the hash of
    32 random bytes. The plaintext is never kept, so the account can only log
    in through the issuer.

Layer rule: no imports from api/, catalog/, or sharing/. Import from core/
is allowed -- core/ is the kernel layer.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth

from auth.models import ROLE_CLIENT, Account
from auth.store import UserStore
from auth.tokens import random_password_hash
from core.config import Settings, get_settings
from core.errors import ConflictError

logger = logging.getLogger("itportal.auth.oauth")

PROVIDER_NAME = "openid"
_DEFAULT_DISPLAY_NAME = "OpenID User"

# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------


def build_oauth(settings: Settings) -> OAuth:
    """Return an OAuth registry with the OIDC client registered if configured.

    By default the endpoints come from the discovery document at a fixed path
    below the issuer URL. When OPENID_AUTHORIZE_URL and OPENID_TOKEN_URL are
    both set, discovery is skipped and the configured endpoints are used.
    """
    registry = OAuth()
    if not settings.openid_enabled:
        return registry

    issuer = settings.openid_issuer_url.rstrip("/")
    endpoints: dict[str, str] = {}
    if settings.openid_authorize_url and settings.openid_token_url:
        endpoints["authorize_url"] = settings.openid_authorize_url
        endpoints["access_token_url"] = settings.openid_token_url
    else:
        endpoints["server_metadata_url"] = f"{issuer}/.well-known/openid-configuration"
    # Extra keyword arguments become authlib's server metadata.
    if settings.openid_userinfo_url:
        endpoints["userinfo_endpoint"] = settings.openid_userinfo_url
    if settings.openid_jwks_url:
        endpoints["jwks_uri"] = settings.openid_jwks_url

    registry.register(
        name=PROVIDER_NAME,
        client_id=settings.openid_client_id,
        client_secret=settings.openid_client_secret,
        client_kwargs={"scope": "openid email profile"},
        **endpoints,
    )
    logger.info(
        "OpenID Connect provider registered (issuer: %s, discovery: %s)",
        issuer,
        "server_metadata_url" in endpoints,
    )
    return registry


oauth = build_oauth(get_settings())


def get_enabled_providers(settings: Settings | None = None) -> list[dict]:
    """Return metadata for the configured federated provider, if any.

    Used by GET /api/auth/providers so the login page can decide whether to
    render the single sign-on button.
    """
    cfg = settings or get_settings()
    if not cfg.openid_enabled:
        return []
    return [{"name": PROVIDER_NAME, "label": cfg.openid_display_name}]


# ---------------------------------------------------------------------------
# Identity extraction and account linking
# ---------------------------------------------------------------------------


def _first_non_empty(*values) -> str | None:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def federated_identity(profile: dict, subject: str | None = None) -> str:
    """Return the effective email for a federated profile.

    Raises:
        ValueError: If the profile carries no email, preferred_username or
            subject at all -- the caller must treat this as a failed login.
    """
    identity = _first_non_empty(
        profile.get("email"),
        profile.get("preferred_username"),
        subject if subject is not None else profile.get("sub"),
    )
    if identity is None:
        raise ValueError("OpenID profile has no email, preferred_username, or subject")
    return identity


def resolve_federated_account(store: UserStore, profile: dict, subject: str | None = None) -> Account:
    """Find or provision the local Account for a federated login.

    Creation is the last step, so a failure anywhere earlier leaves no
    partial account behind.

    Raises:
        ValueError: If no usable identity can be derived from the profile.
    """
    email = federated_identity(profile, subject)
    account = store.get_by_email(email)
    if account is not None:
        return account

    new_account = Account(
        name=_first_non_empty(profile.get("name"), profile.get("preferred_username")) or _DEFAULT_DISPLAY_NAME,
        email=email,
        password=random_password_hash(),
        role=ROLE_CLIENT,
    )
    try:
        account_id = store.create_account(new_account)
    except ConflictError:
        # A concurrent first login for the same identity created it first.
        existing = store.get_by_email(email)
        if existing is None:
            raise
        return existing
    logger.info("Provisioned account %s from OpenID login", account_id)
    created = store.get_by_id(account_id)
    if created is None:
        raise RuntimeError("Account not found after write")
    return created
