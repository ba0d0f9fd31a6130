"""Runtime settings schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class AppSettingsOut(BaseModel):
    webhook_url: str | None = Field(default=None, description="Only returned to the owner")
    webhook_configured: bool
    message_template: str
    app_title: str
    app_subtitle: str
    brasilia_logo_url: str
    bope_logo_url: str
    is_default: bool


class AppSettingsUpdate(BaseModel):
    webhook_url: str | None = Field(default=None, max_length=500)
    message_template: str | None = Field(default=None, min_length=1)
    app_title: str | None = Field(default=None, min_length=1, max_length=200)
    app_subtitle: str | None = Field(default=None, max_length=300)
    brasilia_logo_url: str | None = Field(default=None, max_length=500)
    bope_logo_url: str | None = Field(default=None, max_length=500)

    model_config = {"extra": "forbid"}

    @field_validator("webhook_url")
    @classmethod
    def webhook_is_https(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if v and not v.startswith("https://"):
            raise ValueError("webhook_url must be an https URL")
        return v

    def changes(self) -> dict[str, object]:
        data = self.model_dump(exclude_unset=True)
        # an explicit empty webhook clears the stored one
        if "webhook_url" in data and not data["webhook_url"]:
            data["webhook_url"] = None
        return {k: v for k, v in data.items() if v is not None or k == "webhook_url"}
