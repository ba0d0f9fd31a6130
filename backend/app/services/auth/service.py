"""
Credential store and session holder.

Registration and login report their outcome as an ``AuthResult`` instead
of raising: callers (HTTP handlers, importers, tests) decide what a
duplicate username or a pending account means for them.

Sessions are rows in ``user_sessions``. The current user is always read
through the canonical ``users`` row, so a role change or deletion takes
effect on the very next request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import hash_password, needs_rehash, verify_password
from app.db.base import utcnow
from app.db.models.user import RoleEnum, User, UserSession

_log = structlog.get_logger(__name__)


class AuthFailure(StrEnum):
    DUPLICATE_USERNAME = "duplicate_username"
    INVALID_CREDENTIALS = "invalid_credentials"
    PENDING_APPROVAL = "pending_approval"


_MESSAGES = {
    AuthFailure.DUPLICATE_USERNAME: "Nome de usuário já existe.",
    AuthFailure.INVALID_CREDENTIALS: "Usuário ou senha incorretos.",
    AuthFailure.PENDING_APPROVAL: "Seu cadastro ainda está pendente de aprovação.",
}


@dataclass(frozen=True)
class AuthResult:
    success: bool
    message: str
    failure: AuthFailure | None = None
    user: User | None = None
    session_id: str | None = None

    @classmethod
    def failed(cls, failure: AuthFailure) -> AuthResult:
        return cls(success=False, message=_MESSAGES[failure], failure=failure)


class AuthService:
    """User registration, login sessions and user administration."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # ── Registration / login ──────────────────────────────────────────── #

    async def register(self, username: str, password: str) -> AuthResult:
        if await self.get_by_username(username) is not None:
            _log.info("register_rejected_duplicate", username=username)
            return AuthResult.failed(AuthFailure.DUPLICATE_USERNAME)

        user = User(
            username=username,
            password_hash=hash_password(password),
            role=RoleEnum.PENDING,
        )
        self._db.add(user)
        await self._db.flush()
        _log.info("user_registered", user_id=user.id, username=username)
        return AuthResult(
            success=True,
            message="Solicitação enviada! Aguarde aprovação de um administrador.",
            user=user,
        )

    async def login(self, username: str, password: str) -> AuthResult:
        user = await self.get_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            _log.warning("login_failed", username=username)
            return AuthResult.failed(AuthFailure.INVALID_CREDENTIALS)

        if user.role == RoleEnum.PENDING:
            _log.info("login_pending", username=username)
            return AuthResult.failed(AuthFailure.PENDING_APPROVAL)

        if needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)
            _log.info("credential_upgraded", user_id=user.id)

        user.last_activity = utcnow()
        session = UserSession(user_id=user.id)
        self._db.add(session)
        await self._db.flush()

        _log.info("login_success", username=user.username, role=user.role.value)
        return AuthResult(
            success=True,
            message="Login realizado com sucesso!",
            user=user,
            session_id=session.id,
        )

    async def logout(self, session_id: str) -> None:
        session = await self._db.get(UserSession, session_id)
        if session is not None and not session.is_revoked:
            session.revoked_at = utcnow()
            await self._db.flush()
            _log.info("logout", user_id=session.user_id, session_id=session_id)

    async def get_current_user(self, session_id: str | None) -> User | None:
        """Resolve a session id to its live, non-pending user."""
        if not session_id:
            return None
        session = await self._db.get(UserSession, session_id)
        if session is None or session.is_revoked:
            return None
        user = await self._db.get(User, session.user_id)
        if user is None or user.role == RoleEnum.PENDING:
            return None
        return user

    async def update_activity(self, session_id: str | None) -> User | None:
        user = await self.get_current_user(session_id)
        if user is not None:
            user.last_activity = utcnow()
            await self._db.flush()
        return user

    # ── Lookups ───────────────────────────────────────────────────────── #

    async def get_by_username(self, username: str) -> User | None:
        result = await self._db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def get_user(self, user_id: str) -> User | None:
        return await self._db.get(User, user_id)

    async def list_users(self) -> list[User]:
        result = await self._db.execute(select(User).order_by(User.created_at.desc()))
        return list(result.scalars().all())

    async def list_pending_users(self) -> list[User]:
        result = await self._db.execute(
            select(User).where(User.role == RoleEnum.PENDING).order_by(User.created_at)
        )
        return list(result.scalars().all())

    async def list_online_users(self, window_minutes: int) -> list[User]:
        cutoff = utcnow() - timedelta(minutes=window_minutes)
        result = await self._db.execute(
            select(User)
            .where(
                User.role != RoleEnum.PENDING,
                User.last_activity.is_not(None),
                User.last_activity > cutoff,
            )
            .order_by(User.last_activity.desc())
        )
        return list(result.scalars().all())

    # ── Administration ────────────────────────────────────────────────── #

    async def update_user_role(self, user_id: str, role: RoleEnum) -> User | None:
        """
        Change a user's role. Returns None when the user does not exist.

        Existing sessions are revoked so the user logs in again under the
        new role.
        """
        user = await self._db.get(User, user_id)
        if user is None:
            return None
        previous = user.role
        user.role = role
        await self._revoke_sessions(user.id)
        await self._db.flush()
        _log.info("user_role_changed", user_id=user.id, old_role=previous.value, new_role=role.value)
        return user

    async def approve_user(self, user_id: str, role: RoleEnum) -> User | None:
        return await self.update_user_role(user_id, role)

    async def delete_user(self, user_id: str) -> User | None:
        user = await self._db.get(User, user_id)
        if user is None:
            return None
        await self._db.execute(delete(UserSession).where(UserSession.user_id == user.id))
        await self._db.delete(user)
        await self._db.flush()
        _log.info("user_deleted", user_id=user_id, username=user.username)
        return user

    async def reject_user(self, user_id: str) -> User | None:
        return await self.delete_user(user_id)

    async def ensure_owner(self, username: str, password: str) -> User:
        """Create the bootstrap owner account, or promote it back to admin."""
        user = await self.get_by_username(username)
        if user is None:
            user = User(
                username=username,
                password_hash=hash_password(password),
                role=RoleEnum.ADMIN,
            )
            self._db.add(user)
            await self._db.flush()
            _log.info("owner_bootstrapped", username=username)
        elif user.role != RoleEnum.ADMIN:
            user.role = RoleEnum.ADMIN
            await self._db.flush()
            _log.info("owner_role_restored", username=username)
        return user

    async def _revoke_sessions(self, user_id: str) -> None:
        await self._db.execute(
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.revoked_at.is_(None))
            .values(revoked_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
