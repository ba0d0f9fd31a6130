"""Unit tests for app.services.legacy.importer."""
import hashlib

import pytest
from sqlalchemy import select

from app.core.security import LEGACY_PLAIN, LEGACY_ROLLING, LEGACY_SHA256, rolling_hash
from app.db.models.user import RoleEnum, User
from app.services.activity.logger import ActivityLogger
from app.services.auth.service import AuthService
from app.services.legacy.importer import import_legacy_dump, legacy_credential, parse_timestamp
from app.services.records.store import RecordStore
from app.services.settings.store import AppSettingsStore

pytestmark = pytest.mark.asyncio


def _dump() -> dict:
    return {
        "pmdf_users": [
            {"username": "alfa", "password": "senha1", "role": "admin", "createdAt": "2024-01-01T10:00:00.000Z"},
            {"username": "bravo", "passwordHash": rolling_hash("senha2"), "role": "oficial"},
            {"username": "charlie", "passwordHash": hashlib.sha256(b"senha3").hexdigest(), "role": "sargento"},
            {"username": "", "password": "x"},
        ],
        "pmdf_records": [
            {
                "id": "r2", "individualName": "Beltrano", "dateTime": "2024-02-02T12:00",
                "location": "Gama", "reason": "Furto", "responsibleOfficers": "Sgt. A",
                "createdBy": "bravo", "createdAt": "2024-02-02T12:05:00Z",
                "editedBy": "alfa", "editedAt": "2024-02-03T08:00:00Z",
            },
            {
                "id": "r1", "individualName": "Fulano", "dateTime": "2024-02-01T09:00",
                "location": "Asa Sul", "reason": "Roubo", "responsibleOfficers": "Sgt. B",
                "seizedItems": "Faca", "createdBy": "alfa", "createdAt": "2024-02-01T09:10:00Z",
            },
            {"id": "broken", "individualName": "", "dateTime": "x"},
        ],
        "pmdf_logs": [
            {"action": "edit", "performedBy": "alfa", "details": "Editou", "timestamp": "2024-02-03T08:00:00Z"},
            {"action": "create", "performedBy": "alfa", "details": "Criou", "timestamp": "2024-02-01T09:10:00Z"},
            {"action": "login", "performedBy": "alfa"},
        ],
        "pmdf_settings": {"appTitle": "BOPE Legado", "discordMessageTemplate": "Preso: {individualName}"},
    }


# ─── Helpers ──────────────────────────────────────────────────────────────────

def test_legacy_credential_classifies_inputs():
    sha = hashlib.sha256(b"x").hexdigest()
    assert legacy_credential({"password": "abc"}) == LEGACY_PLAIN + "abc"
    assert legacy_credential({"passwordHash": sha}) == LEGACY_SHA256 + sha
    assert legacy_credential({"passwordHash": "-1a2b"}) == LEGACY_ROLLING + "-1a2b"
    assert legacy_credential({}) is None


def test_parse_timestamp():
    assert parse_timestamp("2024-01-01T10:00:00.000Z").tzinfo is not None
    assert parse_timestamp("2024-02-01T09:00").hour == 9
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


# ─── Import ───────────────────────────────────────────────────────────────────

async def test_import_users_and_credentials(db_session):
    report = await import_legacy_dump(db_session, _dump())

    assert report.users_imported == 3
    assert report.users_skipped == 1
    auth = AuthService(db_session)
    assert (await auth.get_by_username("alfa")).role == RoleEnum.ADMIN
    assert (await auth.get_by_username("charlie")).role == RoleEnum.PENDING
    assert any("sargento" in w for w in report.warnings)

    assert (await auth.login("alfa", "senha1")).success is True
    assert (await auth.login("bravo", "senha2")).success is True
    assert (await auth.login("bravo", "senha1")).success is False


async def test_import_keeps_record_order_and_audit_fields(db_session):
    report = await import_legacy_dump(db_session, _dump())

    assert report.records_imported == 2
    assert report.records_skipped == 1
    records = await RecordStore(db_session).list()
    assert [r.id for r in records] == ["r2", "r1"]
    assert records[0].edited_by == "alfa"
    assert records[1].seized_items == "Faca"
    assert records[1].created_by == "alfa"


async def test_import_logs_form_valid_chain(db_session):
    report = await import_legacy_dump(db_session, _dump())

    assert report.logs_imported == 2
    entries, total = await ActivityLogger(db_session).list()
    assert total == 2
    assert entries[0].details == "Editou"
    assert (await ActivityLogger.verify_chain(db_session)).valid is True


async def test_import_settings(db_session):
    report = await import_legacy_dump(db_session, _dump(), imported_by="owner")

    assert report.settings_imported is True
    values = await AppSettingsStore(db_session).get()
    assert values.app_title == "BOPE Legado"
    assert values.message_template == "Preso: {individualName}"


async def test_import_twice_is_harmless(db_session):
    await import_legacy_dump(db_session, _dump())
    second = await import_legacy_dump(db_session, _dump())

    assert second.users_imported == 0
    assert second.records_imported == 0
    users = (await db_session.execute(select(User))).scalars().all()
    assert len(users) == 3
