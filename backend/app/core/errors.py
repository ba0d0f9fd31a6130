"""
Structured error taxonomy for the registry API.

Every application error has:
  - A stable error code (prefixed by domain)
  - An HTTP status code
  - A human-readable message
  - An optional detail dict for machine consumers

Login and registration outcomes are not errors at the service layer
(see ``AuthFailure``); the HTTP layer turns them into ``AuthError`` or
``ConflictError`` when it has to answer a request.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable error codes. Never reuse a retired code."""

    # Auth
    AUTH_INVALID_CREDENTIALS = "AUTH_001"
    AUTH_TOKEN_EXPIRED = "AUTH_002"
    AUTH_TOKEN_INVALID = "AUTH_003"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_004"
    AUTH_PENDING_APPROVAL = "AUTH_005"
    AUTH_DUPLICATE_USERNAME = "AUTH_006"
    AUTH_SESSION_REVOKED = "AUTH_007"

    # Users
    USER_NOT_FOUND = "USR_001"
    USER_SELF_MODIFICATION = "USR_002"

    # Records
    RECORD_NOT_FOUND = "REC_001"
    RECORD_VERSION_CONFLICT = "REC_002"
    RECORD_TOO_MANY_SCREENSHOTS = "REC_003"

    # Generic
    VALIDATION_ERROR = "GEN_001"
    INTERNAL_ERROR = "GEN_002"
    NOT_FOUND = "GEN_003"
    RATE_LIMITED = "GEN_004"


class AppError(Exception):
    """Base class for all application errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        http_status: int = 500,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.detail = detail or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "detail": self.detail,
            }
        }


# ── Typed convenience subclasses ──────────────────────────────────────── #


class NotFoundError(AppError):
    def __init__(
        self, entity: str, entity_id: str | None = None, code: ErrorCode = ErrorCode.NOT_FOUND
    ) -> None:
        detail = {"entity": entity}
        if entity_id:
            detail["id"] = entity_id
        super().__init__(
            code=code,
            message=f"{entity} not found",
            http_status=404,
            detail=detail,
        )


class AuthError(AppError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message, http_status=401)


class ForbiddenError(AppError):
    def __init__(
        self,
        message: str = "Insufficient permissions",
        code: ErrorCode = ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
    ) -> None:
        super().__init__(code=code, message=message, http_status=403)


class ValidationError(AppError):
    def __init__(self, message: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            http_status=422,
            detail=detail,
        )


class ConflictError(AppError):
    def __init__(
        self, code: ErrorCode, message: str, detail: dict[str, Any] | None = None
    ) -> None:
        super().__init__(code=code, message=message, http_status=409, detail=detail)
