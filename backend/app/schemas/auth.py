"""Auth schemas: registration, login, tokens, user representations."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, computed_field, field_validator

from app.core.permissions import role_label
from app.db.models.user import RoleEnum


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must have at least 3 non-blank characters")
        return v


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=256)


class RefreshRequest(BaseModel):
    refresh_token: str


class UserOut(BaseModel):
    id: str
    username: str
    role: RoleEnum
    created_at: datetime
    last_activity: datetime | None

    model_config = {"from_attributes": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def role_label(self) -> str:
        return role_label(self.role)


class RegisterResponse(BaseModel):
    success: bool
    message: str
    user: UserOut


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    message: str
    user: UserOut


class PermissionsOut(BaseModel):
    is_owner: bool
    is_admin: bool
    can_create_records: bool
    can_edit_records: bool
    can_delete_records: bool
    can_view_all_records: bool
    can_manage_users: bool


class RoleUpdateRequest(BaseModel):
    role: RoleEnum = Field(..., description="admin | comando | oficial | dono_org | user | pending")
