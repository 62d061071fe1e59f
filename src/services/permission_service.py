# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Effective permission resolution.

A user's effective permissions are the union of the permissions of every
role they hold. Nothing is cached: each call runs one join against the
current assignment tables, so a change to a role is visible to the very
next check.
"""

from collections.abc import Iterable

from sqlalchemy.orm import Query, Session

from src.models import Permission, Role, RolePermission, UserRole
from src.rbac.permissions import CorePermission, permission_name
from src.services import rbac_service


def _granted_permissions(db: Session, user_id: int) -> Query:
    return (
        db.query(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id)
    )


def get_user_permissions(db: Session, user_id: int) -> list[Permission]:
    """Get the distinct permissions a user holds through any role."""
    return (
        _granted_permissions(db, user_id)
        .distinct()
        .order_by(Permission.resource, Permission.name)
        .all()
    )


def get_user_permission_names(db: Session, user_id: int) -> set[str]:
    """Get the names of the permissions a user holds through any role."""
    rows = (
        _granted_permissions(db, user_id)
        .with_entities(Permission.name)
        .distinct()
        .all()
    )
    return {row.name for row in rows}


def has_permission(
    db: Session, user_id: int, permission: CorePermission | str
) -> bool:
    """Check if a user holds a permission through any of their roles."""
    match = (
        _granted_permissions(db, user_id)
        .with_entities(Permission.id)
        .filter(Permission.name == permission_name(permission))
        .limit(1)
        .first()
    )
    return match is not None


def has_any_permission(
    db: Session, user_id: int, permissions: Iterable[CorePermission | str]
) -> bool:
    """Check if a user holds at least one of the permissions.

    An empty list is never satisfied.
    """
    names = {permission_name(p) for p in permissions}
    if not names:
        return False
    match = (
        _granted_permissions(db, user_id)
        .with_entities(Permission.id)
        .filter(Permission.name.in_(names))
        .limit(1)
        .first()
    )
    return match is not None


def has_all_permissions(
    db: Session, user_id: int, permissions: Iterable[CorePermission | str]
) -> bool:
    """Check if a user holds every one of the permissions."""
    names = {permission_name(p) for p in permissions}
    if not names:
        return True
    held = (
        _granted_permissions(db, user_id)
        .with_entities(Permission.name)
        .filter(Permission.name.in_(names))
        .distinct()
        .count()
    )
    return held == len(names)


def has_role(db: Session, user_id: int, role_name: str) -> bool:
    """Check if a user holds a role, regardless of its permissions."""
    match = (
        db.query(UserRole.id)
        .join(Role, Role.id == UserRole.role_id)
        .filter(UserRole.user_id == user_id, Role.name == role_name)
        .limit(1)
        .first()
    )
    return match is not None


def get_user_permissions_summary(db: Session, user_id: int) -> dict:
    """Get a user's roles and effective permissions for display."""
    return {
        "user_id": user_id,
        "roles": rbac_service.get_user_roles(db, user_id),
        "permissions": get_user_permissions(db, user_id),
    }
