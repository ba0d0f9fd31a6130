"""Prison record endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends

from app.api.deps import (
    CreatorUser,
    CurrentUser,
    DbSession,
    DeleterUser,
    EditorUser,
    OwnerUser,
    ViewerUser,
)
from app.config.settings import get_settings
from app.core.errors import AppError, ErrorCode, NotFoundError
from app.core.permissions import can_view_all_records
from app.db.models.activity import ActivityAction
from app.db.models.record import PrisonRecord
from app.db.models.user import User
from app.schemas.record import (
    ClearResponse,
    IndividualOut,
    NotifyResponse,
    RecordCreate,
    RecordOut,
    RecordUpdate,
)
from app.services.activity.logger import ActivityLogger
from app.services.notify.dispatcher import WebhookDispatcher
from app.services.records.store import RecordStore
from app.services.settings.store import AppSettingsStore

_log = structlog.get_logger(__name__)

router = APIRouter(prefix="/records", tags=["records"])


def get_dispatcher() -> WebhookDispatcher:
    return WebhookDispatcher()


Dispatcher = Annotated[WebhookDispatcher, Depends(get_dispatcher)]


def _check_screenshot_count(screenshots: list[str] | None) -> None:
    limit = get_settings().max_screenshots_per_record
    if screenshots is not None and len(screenshots) > limit:
        raise AppError(
            ErrorCode.RECORD_TOO_MANY_SCREENSHOTS,
            f"At most {limit} screenshots per record",
            http_status=422,
            detail={"limit": limit, "received": len(screenshots)},
        )


async def _visible_record(store: RecordStore, record_id: str, user: User) -> PrisonRecord:
    record = await store.get(record_id)
    # records outside the caller's view are reported as missing
    if record is None or (not can_view_all_records(user) and record.created_by != user.username):
        raise NotFoundError("Record", record_id, ErrorCode.RECORD_NOT_FOUND)
    return record


@router.get("", response_model=list[RecordOut], summary="List records, most recent first")
async def list_records(current_user: CurrentUser, db: DbSession) -> list[RecordOut]:
    """Users without the view-all permission only see what they registered."""
    store = RecordStore(db)
    if can_view_all_records(current_user):
        records = await store.list()
    else:
        records = await store.list(created_by=current_user.username)
    return [RecordOut.model_validate(r) for r in records]


@router.post("", response_model=RecordOut, status_code=201, summary="Register an arrest")
async def create_record(
    body: RecordCreate,
    current_user: CreatorUser,
    db: DbSession,
    background_tasks: BackgroundTasks,
    dispatcher: Dispatcher,
) -> RecordOut:
    """
    Store the record and log it. When ``notify`` is set the webhook message
    is sent after the response, so a slow or failing webhook never blocks
    or fails the registration.
    """
    _check_screenshot_count(body.screenshots)
    record = await RecordStore(db).create(
        body.model_dump(exclude={"notify"}), created_by=current_user.username
    )
    await ActivityLogger(db).log(
        ActivityAction.CREATE,
        performed_by=current_user.username,
        details=f"Criou um novo registro de prisão: {record.individual_name}",
        target_record=record.snapshot(),
    )
    app_settings = await AppSettingsStore(db).get()
    await db.commit()

    if body.notify:
        background_tasks.add_task(dispatcher.send, record, app_settings)
    return RecordOut.model_validate(record)


@router.get(
    "/individuals",
    response_model=list[IndividualOut],
    summary="Arrest counts per individual",
)
async def list_individuals(current_user: ViewerUser, db: DbSession) -> list[IndividualOut]:
    summaries = await RecordStore(db).aggregate_by_individual()
    return [IndividualOut.model_validate(s) for s in summaries]


@router.get(
    "/individuals/{name}",
    response_model=list[RecordOut],
    summary="All records of one individual (case-insensitive)",
)
async def list_individual_records(name: str, current_user: ViewerUser, db: DbSession) -> list[RecordOut]:
    records = await RecordStore(db).list_by_individual(name)
    return [RecordOut.model_validate(r) for r in records]


@router.delete("", response_model=ClearResponse, summary="Delete every record")
async def clear_records(current_user: OwnerUser, db: DbSession) -> ClearResponse:
    deleted = await RecordStore(db).clear_all()
    await ActivityLogger(db).log(
        ActivityAction.DELETE,
        performed_by=current_user.username,
        details=f"Removeu todos os registros de prisão ({deleted})",
    )
    await db.commit()
    return ClearResponse(deleted=deleted)


@router.get("/{record_id}", response_model=RecordOut, summary="Get one record")
async def get_record(record_id: str, current_user: CurrentUser, db: DbSession) -> RecordOut:
    record = await _visible_record(RecordStore(db), record_id, current_user)
    return RecordOut.model_validate(record)


@router.patch("/{record_id}", response_model=RecordOut, summary="Edit a record")
async def update_record(
    record_id: str,
    body: RecordUpdate,
    current_user: EditorUser,
    db: DbSession,
) -> RecordOut:
    _check_screenshot_count(body.screenshots)
    record = await RecordStore(db).update(
        record_id,
        body.changes(),
        edited_by=current_user.username,
        expected_version=body.expected_version,
    )
    if record is None:
        raise NotFoundError("Record", record_id, ErrorCode.RECORD_NOT_FOUND)

    await ActivityLogger(db).log(
        ActivityAction.EDIT,
        performed_by=current_user.username,
        details=f"Editou o registro de prisão: {record.individual_name}",
        target_record=record.snapshot(),
    )
    await db.commit()
    return RecordOut.model_validate(record)


@router.delete("/{record_id}", status_code=204, summary="Delete a record")
async def delete_record(record_id: str, current_user: DeleterUser, db: DbSession) -> None:
    record = await RecordStore(db).delete(record_id)
    if record is None:
        raise NotFoundError("Record", record_id, ErrorCode.RECORD_NOT_FOUND)

    await ActivityLogger(db).log(
        ActivityAction.DELETE,
        performed_by=current_user.username,
        details=f"Excluiu o registro de prisão: {record.individual_name}",
        target_record=record.snapshot(),
    )
    await db.commit()


@router.post(
    "/{record_id}/notify",
    response_model=NotifyResponse,
    summary="Send a record to the webhook again",
)
async def resend_notification(
    record_id: str,
    current_user: EditorUser,
    db: DbSession,
    dispatcher: Dispatcher,
) -> NotifyResponse:
    record = await _visible_record(RecordStore(db), record_id, current_user)
    app_settings = await AppSettingsStore(db).get()
    delivered = await dispatcher.send(record, app_settings)
    _log.info("notification_resent", record_id=record_id, delivered=delivered)
    return NotifyResponse(delivered=delivered)
