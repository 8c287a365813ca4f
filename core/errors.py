"""
core/errors.py -- Error taxonomy shared by every layer.

Services raise these; api/main.py owns the single exception handler that maps
a PortalError to the JSON error envelope. Route handlers never build error
bodies for these cases themselves.

Messages on AuthenticationError and on anything reachable by anonymous
callers stay generic.
"""

from __future__ import annotations


class PortalError(Exception):
    """Base class. Carries the HTTP status and a machine-readable code."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(PortalError):
    status_code = 400
    code = "validation_error"


class AuthenticationError(PortalError):
    status_code = 401
    code = "unauthorized"


class AuthorizationError(PortalError):
    status_code = 403
    code = "forbidden"


class NotFoundError(PortalError):
    status_code = 404
    code = "not_found"


class ConflictError(PortalError):
    """Uniqueness violation. 400 matches the registration contract."""

    status_code = 400
    code = "conflict"
