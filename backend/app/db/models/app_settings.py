"""Singleton row holding runtime-editable presentation and webhook settings."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin

SINGLETON_ID = 1


class AppSettings(Base, TimestampMixin):
    __tablename__ = "app_settings"

    id: Mapped[int] = mapped_column(primary_key=True, default=SINGLETON_ID)
    webhook_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    message_template: Mapped[str] = mapped_column(Text, nullable=False)
    app_title: Mapped[str] = mapped_column(String(200), nullable=False)
    app_subtitle: Mapped[str] = mapped_column(String(300), nullable=False)
    brasilia_logo_url: Mapped[str] = mapped_column(String(500), nullable=False)
    bope_logo_url: Mapped[str] = mapped_column(String(500), nullable=False)
    updated_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<AppSettings {self.app_title}>"
