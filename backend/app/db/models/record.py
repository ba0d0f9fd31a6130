"""
Prison (arrest) record model.

``sequence`` is a monotonic insertion counter: listing by it descending
gives the most-recent-first order clients expect. ``version`` is the
optimistic concurrency token; SQLAlchemy bumps it on every UPDATE and
refuses to write over a row another writer already changed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class PrisonRecord(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """Single logged arrest with subject, officers, evidence and audit fields."""

    __tablename__ = "prison_records"

    sequence: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)
    individual_name: Mapped[str] = mapped_column(String(200), nullable=False)
    # lowercased name; lookups and grouping go through this column
    individual_key: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    fixed_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    date_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str] = mapped_column(String(300), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    articles: Mapped[str] = mapped_column(Text, nullable=False, default="")
    observations: Mapped[str] = mapped_column(Text, nullable=False, default="")
    seized_items: Mapped[str] = mapped_column(Text, nullable=False, default="")
    responsible_officers: Mapped[str] = mapped_column(Text, nullable=False)
    screenshots: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    edited_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe copy of the record, used for activity log entries."""
        return {
            "id": self.id,
            "individualName": self.individual_name,
            "fixedId": self.fixed_id,
            "dateTime": _iso(self.date_time),
            "location": self.location,
            "reason": self.reason,
            "articles": self.articles,
            "observations": self.observations,
            "seizedItems": self.seized_items,
            "responsibleOfficers": self.responsible_officers,
            "screenshots": list(self.screenshots or []),
            "createdBy": self.created_by,
            "createdAt": _iso(self.created_at),
            "editedBy": self.edited_by,
            "editedAt": _iso(self.edited_at),
        }

    def __repr__(self) -> str:
        return f"<PrisonRecord {self.individual_name} #{self.sequence}>"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
