"""
Append-only activity log.

Entries form a hash chain: each one stores the SHA-256 of the previous
entry, so deleting or editing history is detectable via
``ActivityLogger.verify_chain``.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, UUIDPrimaryKeyMixin, utcnow


class ActivityAction(StrEnum):
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    ROLE_CHANGE = "role_change"
    USER_REMOVE = "user_remove"


class ActivityLog(Base, UUIDPrimaryKeyMixin):
    """Single immutable activity entry."""

    __tablename__ = "activity_logs"
    __table_args__ = (UniqueConstraint("entry_hash", name="uq_activity_entry_hash"),)

    position: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)
    action: Mapped[ActivityAction] = mapped_column(
        Enum(
            ActivityAction,
            name="activity_action",
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        index=True,
    )
    performed_by: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    target_user: Mapped[str | None] = mapped_column(String(100), nullable=True)
    target_record: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    # null for the first entry
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<ActivityLog {self.action} by {self.performed_by}>"
