"""Database model registry. Import all models here so Alembic can discover them."""

from app.db.models.activity import ActivityAction, ActivityLog
from app.db.models.app_settings import AppSettings
from app.db.models.record import PrisonRecord
from app.db.models.user import RoleEnum, User, UserSession

__all__ = [
    "ActivityAction",
    "ActivityLog",
    "AppSettings",
    "PrisonRecord",
    "RoleEnum",
    "User",
    "UserSession",
]
