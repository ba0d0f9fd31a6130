"""
Authorization policy.

Pure predicates over the current user. ``None`` (no session) is never
an error: every predicate simply answers False. Ownership is role-based;
no username is special.
"""

from __future__ import annotations

from collections.abc import Callable

from app.db.models.user import RoleEnum, User

Predicate = Callable[[User | None], bool]

ROLE_LABELS: dict[RoleEnum, str] = {
    RoleEnum.ADMIN: "Administrador",
    RoleEnum.COMANDO: "Comando",
    RoleEnum.OFICIAL: "Oficial",
    RoleEnum.DONO_ORG: "Dono de Org",
    RoleEnum.USER: "Usuário",
    RoleEnum.PENDING: "Pendente",
}

_ADMINISTRATIVE = frozenset({RoleEnum.ADMIN, RoleEnum.COMANDO})
_EDITORS = frozenset({RoleEnum.ADMIN, RoleEnum.COMANDO, RoleEnum.OFICIAL})
_VIEW_ALL = frozenset({RoleEnum.ADMIN, RoleEnum.COMANDO, RoleEnum.OFICIAL, RoleEnum.DONO_ORG})


def _has_role(user: User | None, roles: frozenset[RoleEnum]) -> bool:
    return user is not None and user.role in roles


def is_owner(user: User | None) -> bool:
    return _has_role(user, frozenset({RoleEnum.ADMIN}))


def is_admin(user: User | None) -> bool:
    return _has_role(user, _ADMINISTRATIVE)


def can_create_records(user: User | None) -> bool:
    return user is not None and user.role != RoleEnum.PENDING


def can_edit_records(user: User | None) -> bool:
    return _has_role(user, _EDITORS)


def can_delete_records(user: User | None) -> bool:
    return _has_role(user, _ADMINISTRATIVE)


def can_view_all_records(user: User | None) -> bool:
    return _has_role(user, _VIEW_ALL)


def can_manage_users(user: User | None) -> bool:
    return _has_role(user, _ADMINISTRATIVE)


def role_label(role: RoleEnum | str) -> str:
    """Display label for a role. Raises ValueError for values outside the enum."""
    return ROLE_LABELS[RoleEnum(role)]


def permission_map(user: User | None) -> dict[str, bool]:
    """Every predicate evaluated for one user, keyed by name."""
    return {name: predicate(user) for name, predicate in PREDICATES.items()}


PREDICATES: dict[str, Predicate] = {
    "is_owner": is_owner,
    "is_admin": is_admin,
    "can_create_records": can_create_records,
    "can_edit_records": can_edit_records,
    "can_delete_records": can_delete_records,
    "can_view_all_records": can_view_all_records,
    "can_manage_users": can_manage_users,
}
