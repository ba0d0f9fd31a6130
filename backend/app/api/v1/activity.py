"""Activity log API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from app.api.deps import DbSession, ManagerUser
from app.db.models.activity import ActivityAction
from app.schemas.activity import ActivityListResponse, ActivityOut, ChainVerificationResult
from app.services.activity.logger import ActivityLogger

router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("", response_model=ActivityListResponse, summary="List activity entries")
async def list_activity(
    current_user: ManagerUser,
    db: DbSession,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=200),
    action: ActivityAction | None = Query(default=None),
) -> ActivityListResponse:
    """Return paginated activity entries, most recent first."""
    entries, total = await ActivityLogger(db).list(
        limit=page_size, offset=(page - 1) * page_size, action=action
    )
    return ActivityListResponse(
        items=[ActivityOut.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/verify",
    response_model=ChainVerificationResult,
    summary="Verify activity hash chain integrity",
)
async def verify_chain(current_user: ManagerUser, db: DbSession) -> ChainVerificationResult:
    """
    Recompute the activity hash chain.

    Returns whether the chain is intact and, if not, the ID of the first
    broken link.
    """
    status = await ActivityLogger.verify_chain(db)
    return ChainVerificationResult(
        is_valid=status.valid,
        total_entries=status.total,
        first_broken_at=status.broken_at,
        message="Chain is intact." if status.valid else f"Chain broken at entry {status.broken_at}.",
    )
