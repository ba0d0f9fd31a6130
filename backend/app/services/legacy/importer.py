"""
Import of a browser local-storage export from the old client.

The dump is the JSON object the old app kept under its storage keys::

    {
      "pmdf_users":    [{"username", "password" | "passwordHash", "role", "createdAt", ...}],
      "pmdf_records":  [{"id", "individualName", "dateTime", ...}],   # newest first
      "pmdf_logs":     [{"action", "performedBy", "details", "timestamp", ...}],
      "pmdf_settings": {"webhookUrl", "discordMessageTemplate", ...}
    }

Credentials are stored under a ``legacy-*`` encoding and upgraded to the
current scheme on the user's next successful login. Users and records
are matched by username and id and never overwritten; log entries are
always appended to the chain.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import LEGACY_PLAIN, LEGACY_ROLLING, LEGACY_SHA256
from app.db.models.activity import ActivityAction
from app.db.models.record import PrisonRecord
from app.db.models.user import RoleEnum, User
from app.services.activity.logger import ActivityLogger
from app.services.records.store import RecordStore
from app.services.settings.store import AppSettingsStore

_log = structlog.get_logger(__name__)

USERS_KEY = "pmdf_users"
RECORDS_KEY = "pmdf_records"
LOGS_KEY = "pmdf_logs"
SETTINGS_KEY = "pmdf_settings"

_SHA256_HEX = re.compile(r"^[0-9a-fA-F]{64}$")

_SETTINGS_FIELDS = {
    "webhookUrl": "webhook_url",
    "discordMessageTemplate": "message_template",
    "appTitle": "app_title",
    "appSubtitle": "app_subtitle",
    "brasiliaLogoUrl": "brasilia_logo_url",
    "bopeLogoUrl": "bope_logo_url",
}


@dataclass
class ImportReport:
    users_imported: int = 0
    users_skipped: int = 0
    records_imported: int = 0
    records_skipped: int = 0
    logs_imported: int = 0
    settings_imported: bool = False
    warnings: list[str] = field(default_factory=list)


def legacy_credential(entry: dict[str, Any]) -> str | None:
    """Encode whatever credential an old user entry carried."""
    if entry.get("passwordHash"):
        digest = str(entry["passwordHash"])
        prefix = LEGACY_SHA256 if _SHA256_HEX.match(digest) else LEGACY_ROLLING
        return prefix + digest
    if entry.get("password"):
        return LEGACY_PLAIN + str(entry["password"])
    return None


def parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


async def import_legacy_dump(
    db: AsyncSession, dump: dict[str, Any], imported_by: str = "legacy-import"
) -> ImportReport:
    report = ImportReport()
    await _import_users(db, dump.get(USERS_KEY) or [], report)
    await _import_records(db, dump.get(RECORDS_KEY) or [], report)
    await _import_logs(db, dump.get(LOGS_KEY) or [], report)
    if dump.get(SETTINGS_KEY):
        await _import_settings(db, dump[SETTINGS_KEY], imported_by, report)

    _log.info(
        "legacy_import_finished",
        users=report.users_imported,
        records=report.records_imported,
        logs=report.logs_imported,
        warnings=len(report.warnings),
    )
    return report


async def _import_users(db: AsyncSession, entries: list[dict[str, Any]], report: ImportReport) -> None:
    existing = set((await db.execute(select(User.username))).scalars().all())
    for entry in entries:
        username = str(entry.get("username") or "").strip()
        credential = legacy_credential(entry)
        if not username or credential is None:
            report.warnings.append(f"user entry without username or credential: {username!r}")
            report.users_skipped += 1
            continue
        if username in existing:
            report.users_skipped += 1
            continue

        raw_role = entry.get("role")
        role = RoleEnum.migrate(raw_role)
        if raw_role and role.value != str(raw_role).strip().lower():
            report.warnings.append(f"user {username!r}: unknown role {raw_role!r} set to pending")

        user = User(username=username, password_hash=credential, role=role)
        created_at = parse_timestamp(entry.get("createdAt"))
        if created_at:
            user.created_at = created_at
        user.last_activity = parse_timestamp(entry.get("lastActivity") or entry.get("lastActive"))
        db.add(user)
        existing.add(username)
        report.users_imported += 1
    await db.flush()


async def _import_records(db: AsyncSession, entries: list[dict[str, Any]], report: ImportReport) -> None:
    store = RecordStore(db)
    existing_ids = set((await db.execute(select(PrisonRecord.id))).scalars().all())
    # the old client prepends, so replay oldest first to keep the order
    for entry in reversed(entries):
        record_id = entry.get("id")
        if record_id in existing_ids:
            report.records_skipped += 1
            continue
        date_time = parse_timestamp(entry.get("dateTime"))
        if not entry.get("individualName") or date_time is None:
            report.warnings.append(f"record {record_id!r}: missing name or unparseable date")
            report.records_skipped += 1
            continue

        record = await store.create(
            {
                "individual_name": entry["individualName"],
                "fixed_id": entry.get("fixedId") or "",
                "date_time": date_time,
                "location": entry.get("location") or "",
                "reason": entry.get("reason") or "",
                "articles": entry.get("articles") or "",
                "observations": entry.get("observations") or "",
                "seized_items": entry.get("seizedItems") or "",
                "responsible_officers": entry.get("responsibleOfficers") or "",
                "screenshots": list(entry.get("screenshots") or []),
            },
            created_by=entry.get("createdBy") or "desconhecido",
            record_id=record_id,
            created_at=parse_timestamp(entry.get("createdAt")),
        )
        if entry.get("editedBy"):
            record.edited_by = entry["editedBy"]
            record.edited_at = parse_timestamp(entry.get("editedAt"))
        if record_id:
            existing_ids.add(record_id)
        report.records_imported += 1
    await db.flush()


async def _import_logs(db: AsyncSession, entries: list[dict[str, Any]], report: ImportReport) -> None:
    activity = ActivityLogger(db)
    for entry in reversed(entries):
        try:
            action = ActivityAction(entry.get("action"))
        except ValueError:
            report.warnings.append(f"log entry with unknown action {entry.get('action')!r} skipped")
            continue
        await activity.log(
            action,
            performed_by=entry.get("performedBy") or "desconhecido",
            details=entry.get("details") or "",
            target_user=entry.get("targetUser"),
            target_record=entry.get("targetRecord"),
            timestamp=parse_timestamp(entry.get("timestamp")),
        )
        report.logs_imported += 1


async def _import_settings(
    db: AsyncSession, data: dict[str, Any], imported_by: str, report: ImportReport
) -> None:
    changes = {ours: data[theirs] for theirs, ours in _SETTINGS_FIELDS.items() if data.get(theirs)}
    if not changes:
        return
    await AppSettingsStore(db).save(changes, updated_by=imported_by)
    report.settings_imported = True
