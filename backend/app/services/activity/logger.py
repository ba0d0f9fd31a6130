"""
Append-only activity logger.

Every entry is SHA-256 hashed together with the hash of the entry before
it, forming a linear chain. A writing session holds an asyncio lock until
its transaction ends, so the next writer reads ``prev_hash`` and
``position`` only after the previous entry is committed or discarded.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import utcnow
from app.db.models.activity import ActivityAction, ActivityLog
from app.db.session import hold_until_transaction_end

_log = structlog.get_logger(__name__)

_LOCK = asyncio.Lock()


def _canonical_ts(value: datetime) -> str:
    # SQLite hands datetimes back naive; both forms must hash identically
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def compute_entry_hash(
    action: str,
    performed_by: str,
    target_user: str | None,
    target_record: dict[str, Any] | None,
    details: str,
    timestamp: datetime,
    prev_hash: str | None,
) -> str:
    components = {
        "action": action,
        "performed_by": performed_by,
        "target_user": target_user or "",
        "target_record": target_record or {},
        "details": details,
        "timestamp": _canonical_ts(timestamp),
        "prev_hash": prev_hash or "",
    }
    canonical = json.dumps(components, sort_keys=True, ensure_ascii=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass(frozen=True)
class ChainStatus:
    valid: bool
    total: int
    broken_at: str | None = None


class ActivityLogger:
    """
    Writes and reads activity entries.

    Usage:
        activity = ActivityLogger(db)
        await activity.log(
            ActivityAction.DELETE,
            performed_by=current_user.username,
            details=f"Registro de {record.individual_name} excluído",
            target_record=record.snapshot(),
        )
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def log(
        self,
        action: ActivityAction,
        performed_by: str,
        details: str = "",
        target_user: str | None = None,
        target_record: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> ActivityLog:
        await hold_until_transaction_end(self._db, _LOCK, "activity_chain")
        position, prev_hash = await self._tail()
        timestamp = timestamp or utcnow()
        entry = ActivityLog(
            position=position + 1,
            action=action,
            performed_by=performed_by,
            target_user=target_user,
            target_record=target_record,
            details=details,
            timestamp=timestamp,
            prev_hash=prev_hash,
            entry_hash=compute_entry_hash(
                action=action.value,
                performed_by=performed_by,
                target_user=target_user,
                target_record=target_record,
                details=details,
                timestamp=timestamp,
                prev_hash=prev_hash,
            ),
        )
        self._db.add(entry)
        await self._db.flush()

        _log.debug(
            "activity_logged",
            action=action.value,
            performed_by=performed_by,
            entry_hash=entry.entry_hash,
        )
        return entry

    async def list(
        self,
        limit: int = 50,
        offset: int = 0,
        action: ActivityAction | None = None,
    ) -> tuple[list[ActivityLog], int]:
        """Page of entries, most recent first, plus the unpaged total."""
        query = select(ActivityLog)
        if action is not None:
            query = query.where(ActivityLog.action == action)
        total = await self._db.execute(select(func.count()).select_from(query.subquery()))
        result = await self._db.execute(
            query.order_by(ActivityLog.position.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), int(total.scalar_one())

    async def _tail(self) -> tuple[int, str | None]:
        result = await self._db.execute(
            select(ActivityLog.position, ActivityLog.entry_hash)
            .order_by(ActivityLog.position.desc())
            .limit(1)
        )
        row = result.first()
        if row is None:
            return 0, None
        return row.position, row.entry_hash

    @staticmethod
    async def verify_chain(db: AsyncSession) -> ChainStatus:
        """Recompute every hash oldest-first; report the first broken entry."""
        result = await db.execute(select(ActivityLog).order_by(ActivityLog.position.asc()))
        entries = list(result.scalars().all())

        prev_hash: str | None = None
        for entry in entries:
            expected = compute_entry_hash(
                action=entry.action.value,
                performed_by=entry.performed_by,
                target_user=entry.target_user,
                target_record=entry.target_record,
                details=entry.details,
                timestamp=entry.timestamp,
                prev_hash=prev_hash,
            )
            if entry.prev_hash != prev_hash or expected != entry.entry_hash:
                _log.error(
                    "activity_chain_broken",
                    entry_id=entry.id,
                    expected_hash=expected,
                    stored_hash=entry.entry_hash,
                )
                return ChainStatus(valid=False, total=len(entries), broken_at=entry.id)
            prev_hash = entry.entry_hash

        return ChainStatus(valid=True, total=len(entries))
