"""Legacy import schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LegacyDump(BaseModel):
    """The old client's storage export, keyed by storage key."""

    model_config = ConfigDict(populate_by_name=True)

    users: list[dict[str, Any]] = Field(default_factory=list, alias="pmdf_users")
    records: list[dict[str, Any]] = Field(default_factory=list, alias="pmdf_records")
    logs: list[dict[str, Any]] = Field(default_factory=list, alias="pmdf_logs")
    settings: dict[str, Any] | None = Field(default=None, alias="pmdf_settings")


class ImportReportOut(BaseModel):
    users_imported: int
    users_skipped: int
    records_imported: int
    records_skipped: int
    logs_imported: int
    settings_imported: bool
    warnings: list[str]

    model_config = {"from_attributes": True}
