"""Authentication API endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter
from jose import JWTError

from app.api.deps import CurrentUser, DbSession, TokenClaims
from app.config.settings import get_settings
from app.core.errors import AuthError, ConflictError, ErrorCode, ForbiddenError
from app.core.permissions import permission_map
from app.core.security import create_access_token, create_refresh_token, decode_token
from app.db.models.user import User
from app.schemas.activity import ActivityPing
from app.schemas.auth import (
    LoginRequest,
    PermissionsOut,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UserOut,
)
from app.services.auth.service import AuthFailure, AuthService

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(user: User, session_id: str, message: str, refresh: str | None = None) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(
            subject=user.id, session_id=session_id, role=user.role.value
        ),
        refresh_token=refresh or create_refresh_token(subject=user.id, session_id=session_id),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        message=message,
        user=UserOut.model_validate(user),
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=201,
    summary="Request an account (pending approval)",
)
async def register(body: RegisterRequest, db: DbSession) -> RegisterResponse:
    result = await AuthService(db).register(body.username, body.password)
    if not result.success:
        raise ConflictError(ErrorCode.AUTH_DUPLICATE_USERNAME, result.message)
    await db.commit()
    assert result.user is not None
    return RegisterResponse(
        success=True, message=result.message, user=UserOut.model_validate(result.user)
    )


@router.post("/login", response_model=TokenResponse, summary="Obtain access and refresh tokens")
async def login(body: LoginRequest, db: DbSession) -> TokenResponse:
    """
    Authenticate with username and password.

    Pending accounts are refused with 403 even when the password matches.
    """
    result = await AuthService(db).login(body.username, body.password)
    if result.failure == AuthFailure.PENDING_APPROVAL:
        raise ForbiddenError(result.message, ErrorCode.AUTH_PENDING_APPROVAL)
    if not result.success:
        raise AuthError(ErrorCode.AUTH_INVALID_CREDENTIALS, result.message)

    await db.commit()
    assert result.user is not None and result.session_id is not None
    return _token_response(result.user, result.session_id, result.message)


@router.post("/refresh", response_model=TokenResponse, summary="Refresh access token")
async def refresh_token(body: RefreshRequest, db: DbSession) -> TokenResponse:
    """Exchange a valid refresh token for a new access token on the same session."""
    try:
        payload = decode_token(body.refresh_token)
    except JWTError as exc:
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Refresh token invalid") from exc

    if payload.get("type") != "refresh":
        raise AuthError(ErrorCode.AUTH_TOKEN_INVALID, "Not a refresh token")

    session_id = str(payload.get("sid") or "")
    user = await AuthService(db).get_current_user(session_id)
    if user is None or user.id != payload.get("sub"):
        raise AuthError(ErrorCode.AUTH_SESSION_REVOKED, "Session ended, please log in again")

    return _token_response(user, session_id, "Sessão renovada.", refresh=body.refresh_token)


@router.post("/logout", status_code=204, summary="End the current session")
async def logout(current_user: CurrentUser, claims: TokenClaims, db: DbSession) -> None:
    await AuthService(db).logout(str(claims["sid"]))
    await db.commit()


@router.get("/me", response_model=UserOut, summary="Current user profile")
async def get_me(current_user: CurrentUser) -> UserOut:
    return UserOut.model_validate(current_user)


@router.post("/activity", response_model=ActivityPing, summary="Heartbeat for online presence")
async def ping_activity(current_user: CurrentUser, claims: TokenClaims, db: DbSession) -> ActivityPing:
    user = await AuthService(db).update_activity(str(claims["sid"]))
    await db.commit()
    return ActivityPing(last_activity=user.last_activity if user else None)


@router.get("/permissions", response_model=PermissionsOut, summary="Permissions of the current user")
async def get_permissions(current_user: CurrentUser) -> PermissionsOut:
    return PermissionsOut(**permission_map(current_user))
