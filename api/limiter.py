"""
api/limiter.py -- Shared slowapi rate limiter for the portal's anonymous surfaces.

api/main.py mounts it as middleware; api/routes/auth.py and
api/routes/share_links.py apply per-route limits with @limiter.limit(),
placed BELOW the @router decorator so the route registers the wrapper.
A single instance means one counter store for the whole process.

Clients are keyed by address. Behind a TLS-terminating proxy every request
arrives from the proxy, so with TRUST_PROXY=true the LAST X-Forwarded-For
hop is used instead. That entry is the one the proxy appended; everything to
its left was sent by the client and can be forged.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from core.config import get_settings


def client_key(request: Request) -> str:
    if get_settings().trust_proxy:
        hops = [hop.strip() for hop in request.headers.get("x-forwarded-for", "").split(",")]
        hops = [hop for hop in hops if hop]
        if hops:
            return hops[-1]
    return get_remote_address(request)


limiter = Limiter(key_func=client_key, storage_uri="memory://")


# Limits are resolved per request so a changed setting applies without
# re-importing the routes.
def login_rate_limit() -> str:
    return get_settings().login_rate_limit


def share_download_rate_limit() -> str:
    return get_settings().share_download_rate_limit
