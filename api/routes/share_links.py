"""
api/routes/share_links.py -- Share-link management and anonymous download.

Routes:
  POST   /api/share-links                -- issue a link (requires session)
  GET    /api/share-links/{software_id}  -- list links for an item (admin)
  DELETE /api/share-links/{link_id}      -- revoke a link (admin)
  POST   /api/share-download             -- resolve a secret code (anonymous)

Security:
  [H2] POST /share-download is rate-limited per client address; the secret
       code is the only credential an anonymous caller brings.
  Unknown and expired codes produce the same 404 body.
  The stored password hash is never serialized.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter, share_download_rate_limit
from api.models import (
    ErrorDetail,
    ErrorResponse,
    ShareDownloadRequest,
    ShareDownloadResponse,
    ShareLinkCreate,
    ShareLinkResponse,
)
from auth.dependencies import get_current_user, require_admin
from auth.models import Account
from core.errors import NotFoundError
from sharing.links import issue_share_link, resolve_share_link
from sharing.models import ShareOutcome, ShareResolution
from sharing.store import ShareLinkStore

logger = logging.getLogger("itportal.api.share_links")

# Auth policy:
# - POST   /api/share-links:               requires session (get_current_user)
# - GET    /api/share-links/{software_id}: admin only (require_admin)
# - DELETE /api/share-links/{link_id}:     admin only (require_admin)
# - POST   /api/share-download:            public, rate limited
router = APIRouter()

# Refusal outcomes -> (status, code, message). GRANTED is handled separately.
_REFUSALS: dict[ShareOutcome, tuple[int, str, str]] = {
    ShareOutcome.NOT_FOUND: (404, "not_found", "Invalid or expired secret code"),
    ShareOutcome.NEEDS_PASSWORD: (401, "unauthorized", "A valid password is required."),
    ShareOutcome.WRONG_PASSWORD: (401, "unauthorized", "A valid password is required."),
    ShareOutcome.FORBIDDEN: (403, "forbidden", "This link does not permit downloads."),
}


def _resolution_response(resolution: ShareResolution) -> JSONResponse:
    if resolution.granted:
        body = ShareDownloadResponse(
            file_path=resolution.file_path,
            name=resolution.name,
            note=resolution.note,
        )
        return JSONResponse(status_code=200, content=body.model_dump(by_alias=True))

    status, code, message = _REFUSALS[resolution.outcome]
    content = ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(exclude_none=True)
    if resolution.outcome is ShareOutcome.NEEDS_PASSWORD:
        content["needsPassword"] = True
    return JSONResponse(status_code=status, content=content)


def _links(request: Request) -> ShareLinkStore:
    return request.app.state.share_store


@router.post("/share-links", response_model=ShareLinkResponse, status_code=201)
def create_share_link(
    request: Request,
    body: ShareLinkCreate,
    account: Account = Depends(get_current_user),
) -> ShareLinkResponse:
    """Issue a share link for a catalog item with a stored file."""
    link = issue_share_link(
        _links(request),
        request.app.state.catalog_store,
        software_id=body.software_id,
        issued_by=account,
        password=body.password,
        note=body.note,
        expires_at=body.expires_at,
        permissions=body.permissions,
    )
    return ShareLinkResponse.from_link(link)


@router.get("/share-links/{software_id}", response_model=list[ShareLinkResponse])
def list_share_links(
    request: Request,
    software_id: int,
    _admin: Account = Depends(require_admin),
) -> list[ShareLinkResponse]:
    """Return every link for one item, newest first. Expired links included."""
    return [ShareLinkResponse.from_link(link) for link in _links(request).list_for_software(software_id)]


@router.delete("/share-links/{link_id}", status_code=204)
def delete_share_link(
    request: Request,
    link_id: int,
    admin: Account = Depends(require_admin),
) -> Response:
    """Revoke a link immediately. 404 if it does not exist."""
    if not _links(request).delete_link(link_id):
        raise NotFoundError("Share link not found.")
    logger.info("Share link %d deleted by account %s", link_id, admin.id)
    return Response(status_code=204)


@router.post("/share-download", response_model=ShareDownloadResponse)
@limiter.limit(share_download_rate_limit)  # [H2] must be BELOW @router so the route registers the wrapper
def share_download(request: Request, body: ShareDownloadRequest) -> JSONResponse:
    """Resolve a secret code (and optional password) to a downloadable file."""
    resolution = resolve_share_link(
        _links(request),
        request.app.state.catalog_store,
        body.secret_code,
        body.password,
    )
    return _resolution_response(resolution)
