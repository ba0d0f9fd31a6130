"""Activity log schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.db.models.activity import ActivityAction


class ActivityOut(BaseModel):
    id: str
    action: ActivityAction
    performed_by: str
    target_user: str | None
    target_record: dict[str, Any] | None
    details: str
    timestamp: datetime
    entry_hash: str
    prev_hash: str | None

    model_config = {"from_attributes": True}


class ActivityListResponse(BaseModel):
    items: list[ActivityOut]
    total: int
    page: int
    page_size: int


class ChainVerificationResult(BaseModel):
    is_valid: bool
    total_entries: int
    first_broken_at: str | None = Field(
        default=None, description="ID of the first entry with a broken hash link"
    )
    message: str


class ActivityPing(BaseModel):
    last_activity: datetime | None
