"""Prison record schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

_MAX_SCREENSHOT_CHARS = 8 * 1024 * 1024


def _check_screenshots(value: list[str]) -> list[str]:
    for item in value:
        if not (item.startswith("data:image/") or item.startswith(("http://", "https://"))):
            raise ValueError("Screenshots must be image data URIs or http(s) URLs")
        if len(item) > _MAX_SCREENSHOT_CHARS:
            raise ValueError("Screenshot exceeds the maximum encoded size")
    return value


class RecordCreate(BaseModel):
    individual_name: str = Field(..., min_length=1, max_length=200)
    fixed_id: str = Field(default="", max_length=100)
    date_time: datetime
    location: str = Field(..., min_length=1, max_length=300)
    reason: str = Field(..., min_length=1)
    articles: str = ""
    observations: str = ""
    seized_items: str = ""
    responsible_officers: str = Field(..., min_length=1)
    screenshots: list[str] = Field(default_factory=list)
    notify: bool = Field(default=True, description="Send the record to the webhook")

    _screenshots = field_validator("screenshots")(_check_screenshots)

    @field_validator("individual_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("individual_name must not be blank")
        return v


class RecordUpdate(BaseModel):
    individual_name: str | None = Field(default=None, min_length=1, max_length=200)
    fixed_id: str | None = Field(default=None, max_length=100)
    date_time: datetime | None = None
    location: str | None = Field(default=None, min_length=1, max_length=300)
    reason: str | None = Field(default=None, min_length=1)
    articles: str | None = None
    observations: str | None = None
    seized_items: str | None = None
    responsible_officers: str | None = Field(default=None, min_length=1)
    screenshots: list[str] | None = None
    expected_version: int | None = Field(
        default=None, ge=1, description="Reject the update if the record has moved past this version"
    )

    @field_validator("screenshots")
    @classmethod
    def screenshots_valid(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else _check_screenshots(v)

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True, exclude_none=True, exclude={"expected_version"})


class RecordOut(BaseModel):
    id: str
    individual_name: str
    fixed_id: str
    date_time: datetime
    location: str
    reason: str
    articles: str
    observations: str
    seized_items: str
    responsible_officers: str
    screenshots: list[str]
    created_by: str
    created_at: datetime
    edited_by: str | None
    edited_at: datetime | None
    version: int

    model_config = {"from_attributes": True}


class IndividualOut(BaseModel):
    name: str
    count: int
    last_record: RecordOut

    model_config = {"from_attributes": True}


class NotifyResponse(BaseModel):
    delivered: bool


class ClearResponse(BaseModel):
    deleted: int
