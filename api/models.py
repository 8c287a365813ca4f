"""
API request and response models for the portal REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py,
catalog/models.py and sharing/models.py, which own the internal domain
representation. Route handlers map between the two.

JSON field names are camelCase on the wire (secretCode, expiresAt, ...);
Python attributes stay snake_case. Requests accept either spelling.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import Account
from sharing.models import PERMISSION_DOWNLOAD, ShareLink

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _encodable_password(value: str) -> str:
    # Lone surrogates survive JSON decoding but cannot be hashed.
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("Password must be valid Unicode text.") from None
    return value


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Accounts and authentication
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Request body for POST /api/register.

    Self-registration always yields a client account; there is no role field.
    """

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=_EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=255)
    username: Optional[str] = Field(default=None, max_length=255)

    @field_validator("password")
    @classmethod
    def password_encodable(cls, value: str) -> str:
        return _encodable_password(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("username")
    @classmethod
    def blank_username_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class LoginRequest(_CamelModel):
    """Request body for POST /api/login. username accepts an email too."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class ChangePasswordRequest(_CamelModel):
    """Request body for POST /api/change-password."""

    current_password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(min_length=8, max_length=255)

    @field_validator("new_password")
    @classmethod
    def new_password_encodable(cls, value: str) -> str:
        return _encodable_password(value)


class ChangePasswordResponse(BaseModel):
    success: bool = True
    message: str = "Password changed successfully"


class AccountResponse(_CamelModel):
    """Public account shape. Never carries the password hash."""

    id: int
    name: str
    email: str
    username: Optional[str] = None
    role: str
    created_at: str
    updated_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            username=account.username,
            role=account.role,
            created_at=account.created_at or "",
            updated_at=account.updated_at or "",
        )


class OAuthProviderInfo(BaseModel):
    """One entry in GET /api/auth/providers."""

    name: str
    label: str


# ---------------------------------------------------------------------------
# Share links
# ---------------------------------------------------------------------------


class ShareLinkCreate(_CamelModel):
    """Request body for POST /api/share-links."""

    software_id: int = Field(gt=0)
    password: Optional[str] = Field(default=None, max_length=255)
    note: Optional[str] = Field(default=None, max_length=2000)
    expires_at: Optional[datetime] = None
    permissions: str = Field(default=PERMISSION_DOWNLOAD, min_length=1, max_length=50)


class ShareLinkResponse(_CamelModel):
    """A stored share link. The password hash never leaves the server."""

    id: int
    software_id: int
    secret_code: str
    share_url: str
    has_password: bool
    note: Optional[str] = None
    permissions: str
    expires_at: Optional[str] = None
    created_by: int
    created_at: str

    @classmethod
    def from_link(cls, link: ShareLink) -> "ShareLinkResponse":
        return cls(
            id=link.id,
            software_id=link.software_id,
            secret_code=link.secret_code,
            share_url=link.share_url,
            has_password=link.has_password,
            note=link.note,
            permissions=link.permissions,
            expires_at=link.expires_at,
            created_by=link.created_by,
            created_at=link.created_at or "",
        )


class ShareDownloadRequest(_CamelModel):
    """Request body for POST /api/share-download (anonymous)."""

    secret_code: str = Field(min_length=1, max_length=64)
    password: Optional[str] = Field(default=None, max_length=255)


class ShareDownloadResponse(_CamelModel):
    """Granted share download: where the file-serving layer finds the file."""

    file_path: str
    name: Optional[str] = None
    note: Optional[str] = None
