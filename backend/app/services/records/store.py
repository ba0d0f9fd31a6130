"""
Record store: arrest records, newest first.

Each mutation touches one row. Ordering comes from ``sequence``. A
creating session holds the process-wide sequence lock until its
transaction ends, so concurrent creates in one process read each other's
committed maximum. Across processes the unique constraint on the column
turns a race into an IntegrityError instead of a silent reorder.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ConflictError, ErrorCode
from app.db.base import utcnow
from app.db.models.record import PrisonRecord
from app.db.session import hold_until_transaction_end

_log = structlog.get_logger(__name__)

_SEQUENCE_LOCK = asyncio.Lock()

EDITABLE_FIELDS = frozenset(
    {
        "individual_name",
        "fixed_id",
        "date_time",
        "location",
        "reason",
        "articles",
        "observations",
        "seized_items",
        "responsible_officers",
        "screenshots",
    }
)


def individual_key(name: str) -> str:
    return name.lower()


@dataclass(frozen=True)
class IndividualSummary:
    name: str
    count: int
    last_record: PrisonRecord


class RecordStore:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def list(self, created_by: str | None = None) -> list[PrisonRecord]:
        """All records, most recent first; optionally only one author's."""
        query = select(PrisonRecord).order_by(PrisonRecord.sequence.desc())
        if created_by is not None:
            query = query.where(PrisonRecord.created_by == created_by)
        result = await self._db.execute(query)
        return list(result.scalars().all())

    async def get(self, record_id: str) -> PrisonRecord | None:
        return await self._db.get(PrisonRecord, record_id)

    async def create(
        self,
        fields: Mapping[str, Any],
        created_by: str,
        *,
        record_id: str | None = None,
        created_at: Any = None,
    ) -> PrisonRecord:
        values = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        values["individual_key"] = individual_key(values["individual_name"])
        values.setdefault("screenshots", [])
        if record_id is not None:
            values["id"] = record_id
        if created_at is not None:
            values["created_at"] = created_at

        await hold_until_transaction_end(self._db, _SEQUENCE_LOCK, "record_sequence")
        record = PrisonRecord(
            sequence=await self._next_sequence(),
            created_by=created_by,
            **values,
        )
        self._db.add(record)
        await self._db.flush()

        _log.info(
            "record_created",
            record_id=record.id,
            individual=record.individual_name,
            created_by=created_by,
        )
        return record

    async def update(
        self,
        record_id: str,
        changes: Mapping[str, Any],
        edited_by: str,
        expected_version: int | None = None,
    ) -> PrisonRecord | None:
        """
        Apply a partial update. Returns None (and changes nothing) if the
        record does not exist.

        Raises:
            ConflictError: ``expected_version`` is stale, or another writer
                updated the row between load and flush.
        """
        record = await self.get(record_id)
        if record is None:
            return None
        if expected_version is not None and expected_version != record.version:
            raise ConflictError(
                ErrorCode.RECORD_VERSION_CONFLICT,
                "Record was modified by someone else.",
                detail={"expected_version": expected_version, "current_version": record.version},
            )

        for key, value in changes.items():
            if key in EDITABLE_FIELDS:
                setattr(record, key, value)
        if "individual_name" in changes:
            record.individual_key = individual_key(record.individual_name)
        record.edited_by = edited_by
        record.edited_at = utcnow()

        try:
            await self._db.flush()
        except StaleDataError as exc:
            raise ConflictError(
                ErrorCode.RECORD_VERSION_CONFLICT, "Record was modified by someone else."
            ) from exc

        _log.info("record_updated", record_id=record_id, edited_by=edited_by, version=record.version)
        return record

    async def delete(self, record_id: str) -> PrisonRecord | None:
        """Remove a record and return it, or None if it was not there."""
        record = await self.get(record_id)
        if record is None:
            return None
        await self._db.delete(record)
        await self._db.flush()
        _log.info("record_deleted", record_id=record_id)
        return record

    async def clear_all(self) -> int:
        result = await self._db.execute(delete(PrisonRecord))
        _log.warning("records_cleared", count=result.rowcount)
        return int(result.rowcount or 0)

    async def list_by_individual(self, name: str) -> list[PrisonRecord]:
        result = await self._db.execute(
            select(PrisonRecord)
            .where(PrisonRecord.individual_key == individual_key(name))
            .order_by(PrisonRecord.sequence.desc())
        )
        return list(result.scalars().all())

    async def aggregate_by_individual(self) -> list[IndividualSummary]:
        """
        One summary per individual (case-insensitive), busiest first.

        ``last_record`` is the group's newest record by ``created_at``; its
        spelling of the name is the one reported.
        """
        result = await self._db.execute(
            select(PrisonRecord).order_by(
                PrisonRecord.created_at.desc(), PrisonRecord.sequence.desc()
            )
        )
        groups: dict[str, list[PrisonRecord]] = {}
        for record in result.scalars().all():
            groups.setdefault(record.individual_key, []).append(record)

        summaries = [
            IndividualSummary(name=records[0].individual_name, count=len(records), last_record=records[0])
            for records in groups.values()
        ]
        # stable: equal counts keep most-recently-active first
        summaries.sort(key=lambda s: s.count, reverse=True)
        return summaries

    async def count(self) -> int:
        result = await self._db.execute(select(func.count()).select_from(PrisonRecord))
        return int(result.scalar_one())

    async def _next_sequence(self) -> int:
        result = await self._db.execute(select(func.max(PrisonRecord.sequence)))
        current = result.scalar_one_or_none()
        return (current or 0) + 1
