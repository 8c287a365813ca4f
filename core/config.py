"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the portal happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_secret -> SESSION_SECRET).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Dev mode generates a session secret with a warning; production
      mode refuses to start without one.

Security notes:
  [M6] SESSION_SECRET shorter than 32 chars is rejected outright. Session
       cookie signing relies on key entropy.

  [M7] Outside DEBUG mode a missing SESSION_SECRET is a hard startup failure.
       A random per-process key would silently log everyone out on restart
       and break multi-instance deployments.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, catalog/, or sharing/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("itportal.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'itportal.db'}"

SEVEN_DAYS_SECONDS = 7 * 24 * 60 * 60


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    session_secret: str = ""
    database_url: str = _DEFAULT_DB_URL

    # Used to derive the default OIDC callback URL.
    host: str = "localhost"
    port: int = 5000

    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost:5000", "http://127.0.0.1:5000"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_max_age_seconds: int = SEVEN_DAYS_SECONDS
    secure_cookies: bool = False
    # One trusted reverse proxy: honour its X-Forwarded-Proto and key rate
    # limits on the X-Forwarded-For hop it appends. Set false when clients
    # connect directly.
    trust_proxy: bool = True

    # ------------------------------------------------------------------
    # Federated login (optional -- inert unless issuer, id and secret are set)
    # ------------------------------------------------------------------

    openid_issuer_url: str = ""
    openid_client_id: str = ""
    openid_client_secret: str = ""
    openid_callback_url: str = ""
    openid_display_name: str = "Single Sign-On"
    # Issuers without a discovery document: set both the authorize and token
    # endpoints to skip discovery. userinfo and JWKS are optional either way.
    openid_authorize_url: str = ""
    openid_token_url: str = ""
    openid_userinfo_url: str = ""
    openid_jwks_url: str = ""

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    # Anonymous share downloads; bounds secret-code guessing per client.
    share_download_rate_limit: str = "30/minute"

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def openid_enabled(self) -> bool:
        return bool(self.openid_issuer_url and self.openid_client_id and self.openid_client_secret)

    @property
    def openid_redirect_uri(self) -> str:
        if self.openid_callback_url:
            return self.openid_callback_url
        return f"http://{self.host}:{self.port}/api/auth/openid/callback"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_session_secret(self) -> "Settings":
        """Enforce the SESSION_SECRET policy [M7].

        Dev mode (DEBUG=true): auto-generate a random secret with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if SESSION_SECRET is missing.

        Both modes: reject secrets shorter than 32 characters [M6].
        """
        if not self.session_secret:
            if self.debug:
                self.session_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated SESSION_SECRET. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SESSION_SECRET is required in production mode. "
                    "Set SESSION_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.session_secret) < 32:
            raise ValueError("SESSION_SECRET must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
