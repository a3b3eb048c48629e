"""
core/errors.py -- Domain error taxonomy for Exploree Accounts.

Stores and route handlers raise these; api/main.py maps every ServiceError to
the standard ErrorResponse envelope:

    {"error": {"code": "...", "message": "...", "detail": ...}}

status_code is carried on the instance (not only the class) so a guard can
reuse a category with a different HTTP status, e.g. the self-deletion guard
is an AuthorizationError reported as 400.

Layer rule: core/ is the kernel -- no imports from other project packages.
"""

from __future__ import annotations

from typing import Any, Optional


class ServiceError(Exception):
    """Base class for errors that have a defined HTTP representation."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail


class ValidationError(ServiceError):
    """Missing or malformed input."""

    status_code = 400
    code = "validation_error"


class AuthenticationError(ServiceError):
    """Missing, invalid or expired token, or bad credentials."""

    status_code = 401
    code = "unauthorized"


class AuthorizationError(ServiceError):
    """Valid identity that is not allowed to perform the operation."""

    status_code = 403
    code = "forbidden"


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"


class ConflictError(ServiceError):
    """Unique constraint hit (duplicate email, duplicate waitlist entry)."""

    status_code = 400
    code = "conflict"


class InternalError(ServiceError):
    """Unexpected store or codec failure."""

    status_code = 500
    code = "internal_error"
