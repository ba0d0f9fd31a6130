"""Admin user management endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from app.api.deps import DbSession, ManagerUser, OwnerUser
from app.config.settings import get_settings
from app.core.errors import ErrorCode, ForbiddenError, NotFoundError, ValidationError
from app.core.permissions import is_owner, role_label
from app.db.models.activity import ActivityAction
from app.db.models.user import RoleEnum, User
from app.schemas.auth import RoleUpdateRequest, UserOut
from app.schemas.legacy import ImportReportOut, LegacyDump
from app.services.activity.logger import ActivityLogger
from app.services.auth.service import AuthService
from app.services.legacy.importer import import_legacy_dump

router = APIRouter(prefix="/admin", tags=["admin"])


async def _target_user(service: AuthService, user_id: str, actor: User) -> User:
    """Load a user the actor is allowed to modify."""
    user = await service.get_user(user_id)
    if user is None:
        raise NotFoundError("User", user_id, ErrorCode.USER_NOT_FOUND)
    if user.id == actor.id:
        raise ForbiddenError("You cannot modify your own account.", ErrorCode.USER_SELF_MODIFICATION)
    if user.role == RoleEnum.ADMIN and not is_owner(actor):
        raise ForbiddenError("Only an administrator can modify another administrator.")
    return user


def _check_assignable(role: RoleEnum, actor: User) -> None:
    if role == RoleEnum.PENDING:
        raise ValidationError("Role 'pending' cannot be assigned.", detail={"role": role.value})
    if role == RoleEnum.ADMIN and not is_owner(actor):
        raise ForbiddenError("Only an administrator can grant the administrator role.")


@router.get("/users", response_model=list[UserOut], summary="List all users")
async def list_users(current_user: ManagerUser, db: DbSession) -> list[UserOut]:
    users = await AuthService(db).list_users()
    return [UserOut.model_validate(u) for u in users]


@router.get("/users/pending", response_model=list[UserOut], summary="Accounts awaiting approval")
async def list_pending_users(current_user: ManagerUser, db: DbSession) -> list[UserOut]:
    users = await AuthService(db).list_pending_users()
    return [UserOut.model_validate(u) for u in users]


@router.get("/users/online", response_model=list[UserOut], summary="Users active recently")
async def list_online_users(current_user: ManagerUser, db: DbSession) -> list[UserOut]:
    users = await AuthService(db).list_online_users(get_settings().online_window_minutes)
    return [UserOut.model_validate(u) for u in users]


@router.post("/users/{user_id}/approve", response_model=UserOut, summary="Approve a pending account")
async def approve_user(
    user_id: str,
    body: RoleUpdateRequest,
    current_user: ManagerUser,
    db: DbSession,
) -> UserOut:
    service = AuthService(db)
    user = await _target_user(service, user_id, current_user)
    if not user.is_pending:
        raise ValidationError("User is not pending approval.", detail={"role": user.role.value})
    _check_assignable(body.role, current_user)

    await service.approve_user(user.id, body.role)
    await ActivityLogger(db).log(
        ActivityAction.ROLE_CHANGE,
        performed_by=current_user.username,
        target_user=user.username,
        details=f"Aprovou o usuário {user.username} como {role_label(body.role)}",
    )
    await db.commit()
    return UserOut.model_validate(user)


@router.post("/users/{user_id}/reject", status_code=204, summary="Reject a pending account")
async def reject_user(user_id: str, current_user: ManagerUser, db: DbSession) -> None:
    service = AuthService(db)
    user = await _target_user(service, user_id, current_user)
    if not user.is_pending:
        raise ValidationError("User is not pending approval.", detail={"role": user.role.value})

    username = user.username
    await service.reject_user(user.id)
    await ActivityLogger(db).log(
        ActivityAction.USER_REMOVE,
        performed_by=current_user.username,
        target_user=username,
        details=f"Rejeitou o pedido de cadastro de {username}",
    )
    await db.commit()


@router.patch("/users/{user_id}", response_model=UserOut, summary="Change a user's role")
async def update_user_role(
    user_id: str,
    body: RoleUpdateRequest,
    current_user: ManagerUser,
    db: DbSession,
) -> UserOut:
    """Existing sessions of the user are revoked by the role change."""
    service = AuthService(db)
    user = await _target_user(service, user_id, current_user)
    _check_assignable(body.role, current_user)

    await service.update_user_role(user.id, body.role)
    await ActivityLogger(db).log(
        ActivityAction.ROLE_CHANGE,
        performed_by=current_user.username,
        target_user=user.username,
        details=f"Alterou o cargo de {user.username} para {role_label(body.role)}",
    )
    await db.commit()
    return UserOut.model_validate(user)


@router.delete("/users/{user_id}", status_code=204, summary="Remove a user")
async def delete_user(user_id: str, current_user: ManagerUser, db: DbSession) -> None:
    service = AuthService(db)
    user = await _target_user(service, user_id, current_user)

    username = user.username
    await service.delete_user(user.id)
    await ActivityLogger(db).log(
        ActivityAction.USER_REMOVE,
        performed_by=current_user.username,
        target_user=username,
        details=f"Removeu o usuário {username}",
    )
    await db.commit()


@router.post(
    "/import-legacy",
    response_model=ImportReportOut,
    summary="Import a storage export from the old client",
)
async def import_legacy(body: LegacyDump, current_user: OwnerUser, db: DbSession) -> ImportReportOut:
    report = await import_legacy_dump(
        db, body.model_dump(by_alias=True), imported_by=current_user.username
    )
    await db.commit()
    return ImportReportOut.model_validate(report)
