"""
FastAPI dependency providers.

All authentication and authorization logic lives here, not in routes.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthError, ErrorCode, ForbiddenError
from app.core.permissions import (
    Predicate,
    can_create_records,
    can_delete_records,
    can_edit_records,
    can_manage_users,
    can_view_all_records,
    is_owner,
)
from app.core.security import decode_token
from app.db.models.user import User
from app.db.session import get_db
from app.services.auth.service import AuthService

_log = structlog.get_logger(__name__)
_bearer = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_token_claims(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> dict[str, object]:
    """Decode the Bearer access token. Raises AuthError on any JWT problem."""
    if credentials is None:
        raise AuthError(
            ErrorCode.AUTH_TOKEN_INVALID, "Authorization header missing or not Bearer type"
        )

    try:
        payload = decode_token(credentials.credentials)
    except ExpiredSignatureError as exc:
        raise AuthError(ErrorCode.AUTH_TOKEN_EXPIRED, "Token expired") from exc
    except JWTError as exc:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Token invalid") from exc

    if payload.get("type") != "access":
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Token is not an access token")
    if not payload.get("sub") or not payload.get("sid"):
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Token missing subject or session")
    return payload


TokenClaims = Annotated[dict[str, object], Depends(get_token_claims)]


async def get_current_user(claims: TokenClaims, db: DbSession) -> User:
    """
    Resolve the token's session to the live user row.

    The role in the token is informational only; authorization always
    reads the stored role, so a demotion or deletion applies immediately.
    """
    user = await AuthService(db).get_current_user(str(claims["sid"]))
    if user is None or user.id != claims["sub"]:
        raise AuthError(ErrorCode.AUTH_SESSION_REVOKED, "Session ended, please log in again")

    structlog.contextvars.bind_contextvars(user_id=user.id, username=user.username)
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_permission(predicate: Predicate, action: str):
    """Return a dependency callable that enforces a permission predicate."""

    async def _check(user: CurrentUser) -> User:
        if not predicate(user):
            _log.info("permission_denied", action=action, role=user.role.value)
            raise ForbiddenError(
                f"This action requires permission to {action}. Your role is: {user.role.value}"
            )
        return user

    return _check


OwnerUser = Annotated[User, Depends(require_permission(is_owner, "administer the system"))]
ManagerUser = Annotated[User, Depends(require_permission(can_manage_users, "manage users"))]
CreatorUser = Annotated[User, Depends(require_permission(can_create_records, "create records"))]
EditorUser = Annotated[User, Depends(require_permission(can_edit_records, "edit records"))]
DeleterUser = Annotated[User, Depends(require_permission(can_delete_records, "delete records"))]
ViewerUser = Annotated[User, Depends(require_permission(can_view_all_records, "view all records"))]
