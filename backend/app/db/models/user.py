"""
Database models for users and their login sessions.

Roles are a closed enumeration stored as a plain string column
(non-native enum) for schema portability across SQLite and PostgreSQL.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, CreatedAtMixin, TimestampMixin, UUIDPrimaryKeyMixin


class RoleEnum(StrEnum):
    """Application-level role definitions."""

    ADMIN = "admin"
    COMANDO = "comando"
    OFICIAL = "oficial"
    DONO_ORG = "dono_org"
    USER = "user"
    PENDING = "pending"

    @classmethod
    def migrate(cls, value: str | None) -> RoleEnum:
        """Map a stored role string onto the enum; unknown values become PENDING."""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.PENDING


def _role_column_type() -> Enum:
    return Enum(
        RoleEnum,
        name="user_role",
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """User entity with hashed credential and role."""

    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("username", name="uq_users_username"),)

    username: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[RoleEnum] = mapped_column(
        _role_column_type(), nullable=False, default=RoleEnum.PENDING, index=True
    )
    last_activity: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    sessions: Mapped[list[UserSession]] = relationship(
        "UserSession",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_pending(self) -> bool:
        return self.role == RoleEnum.PENDING

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role})>"


class UserSession(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """A login session. Tokens reference it by id; logout revokes it."""

    __tablename__ = "user_sessions"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    user: Mapped[User] = relationship("User", back_populates="sessions")

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def __repr__(self) -> str:
        return f"<UserSession {self.id} user={self.user_id}>"
