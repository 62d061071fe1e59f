# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Permission catalog, role store and assignment service.

Every mutating function commits exactly once. A store error rolls the
session back and propagates, so a failed call never leaves a half-applied
change behind. Validation failures raise :mod:`src.rbac.exceptions` errors
before anything is written.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from src.events import AppEvent, event_bus
from src.models import Permission, Role, RolePermission, User, UserRole
from src.rbac.exceptions import (
    DuplicateNameError,
    ForbiddenError,
    InvalidNameError,
    NotFoundError,
    RoleInUseError,
)
from src.rbac.permissions import resource_of, validate_permission_name

logger = logging.getLogger(__name__)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def _require_role(db: Session, role_id: int) -> Role:
    role = get_role(db, role_id)
    if not role:
        raise NotFoundError("role", role_id)
    return role


def _require_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("user", user_id)
    return user


def _require_permission_ids(db: Session, permission_ids: Iterable[int]) -> set[int]:
    """Return the distinct ids, raising NotFoundError if any is unknown."""
    wanted = set(permission_ids)
    if not wanted:
        return wanted
    found = {
        row.id
        for row in db.query(Permission.id).filter(Permission.id.in_(wanted)).all()
    }
    missing = wanted - found
    if missing:
        raise NotFoundError("permission", sorted(missing))
    return wanted


# -- Permission catalog ----------------------------------------------------


def list_permissions(db: Session) -> list[Permission]:
    """Get all permissions, grouped by resource."""
    return db.query(Permission).order_by(Permission.resource, Permission.name).all()


def list_permissions_by_resource(db: Session, resource: str) -> list[Permission]:
    """Get the permissions of one resource category."""
    return (
        db.query(Permission)
        .filter(Permission.resource == resource)
        .order_by(Permission.name)
        .all()
    )


def get_permission(db: Session, permission_id: int) -> Permission | None:
    """Get a permission by ID."""
    return db.query(Permission).filter(Permission.id == permission_id).first()


def get_permission_by_name(db: Session, name: str) -> Permission | None:
    """Get a permission by its name."""
    return db.query(Permission).filter(Permission.name == name).first()


def create_permission(
    db: Session, name: str, description: str | None = None
) -> Permission:
    """Add a permission to the catalog."""
    if not validate_permission_name(name):
        raise InvalidNameError(
            f"Invalid permission name '{name}': expected 'resource:action'"
        )
    if get_permission_by_name(db, name):
        raise DuplicateNameError("permission", name)

    permission = Permission(
        name=name, description=description, resource=resource_of(name)
    )
    db.add(permission)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateNameError("permission", name) from exc
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(permission)

    logger.info(f"Created permission {permission.name}")
    event_bus.publish_sync(
        AppEvent.PERMISSION_CREATED,
        {"permission_id": permission.id, "name": permission.name},
    )
    return permission


# -- Role store --------------------------------------------------------------


def list_roles(db: Session) -> list[Role]:
    """Get all roles with their permission edges loaded."""
    return (
        db.query(Role)
        .options(selectinload(Role.permissions))
        .order_by(Role.name)
        .all()
    )


def get_role(db: Session, role_id: int) -> Role | None:
    """Get a role by ID."""
    return db.query(Role).filter(Role.id == role_id).first()


def get_role_by_name(db: Session, name: str) -> Role | None:
    """Get a role by its name."""
    return db.query(Role).filter(Role.name == name).first()


def get_role_permissions(db: Session, role_id: int) -> list[Permission]:
    """Get the permissions granted to a role."""
    _require_role(db, role_id)
    return (
        db.query(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role_id)
        .order_by(Permission.resource, Permission.name)
        .all()
    )


def create_role(
    db: Session,
    name: str,
    description: str | None = None,
    permission_ids: Iterable[int] | None = None,
    is_system: bool = False,
) -> Role:
    """Create a role, optionally with its initial permission set.

    The role and its permission edges are written in one transaction.
    """
    name = name.strip()
    if not name:
        raise InvalidNameError("Role name must not be empty")
    if get_role_by_name(db, name):
        raise DuplicateNameError("role", name)
    wanted = _require_permission_ids(db, permission_ids or [])

    role = Role(name=name, description=description, is_system=is_system)
    role.permissions = [RolePermission(permission_id=pid) for pid in sorted(wanted)]
    db.add(role)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateNameError("role", name) from exc
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(role)

    logger.info(f"Created role {role.name} with {len(wanted)} permission(s)")
    event_bus.publish_sync(
        AppEvent.ROLE_CREATED,
        {"role_id": role.id, "name": role.name, "permission_ids": sorted(wanted)},
    )
    return role


def update_role(
    db: Session,
    role_id: int,
    name: str | None = None,
    description: str | None = None,
) -> Role:
    """Rename a role or change its description.

    System roles keep their name; their description may still change.
    """
    role = _require_role(db, role_id)
    changes: dict[str, str] = {}

    if name is not None:
        name = name.strip()
        if not name:
            raise InvalidNameError("Role name must not be empty")
        if name != role.name:
            if role.is_system:
                raise ForbiddenError("System roles cannot be renamed")
            existing = get_role_by_name(db, name)
            if existing and existing.id != role.id:
                raise DuplicateNameError("role", name)
            changes["name"] = name

    if description is not None and description != role.description:
        changes["description"] = description

    if not changes:
        return role

    for field, value in changes.items():
        setattr(role, field, value)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateNameError("role", changes.get("name", role.name)) from exc
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(role)

    event_bus.publish_sync(
        AppEvent.ROLE_UPDATED, {"role_id": role.id, "changes": changes}
    )
    return role


def delete_role(db: Session, role_id: int) -> None:
    """Delete a role together with its permission edges.

    The in-use check and the delete share one transaction.
    """
    role = _require_role(db, role_id)
    if role.is_system:
        raise ForbiddenError("System roles cannot be deleted")

    holders = get_users_by_role(db, role_id)
    if holders:
        raise RoleInUseError(
            role.name,
            [{"id": u.id, "username": u.username, "email": u.email} for u in holders],
        )

    role_name = role.name
    # Cascades to role_permissions in the same flush
    db.delete(role)
    _commit(db)

    logger.info(f"Deleted role {role_name}")
    event_bus.publish_sync(
        AppEvent.ROLE_DELETED, {"role_id": role_id, "name": role_name}
    )


# -- Role-permission assignment ----------------------------------------------


def set_role_permissions(
    db: Session, role_id: int, permission_ids: Iterable[int]
) -> Role:
    """Replace a role's permission set.

    Unknown ids are rejected before anything changes. Only the difference
    between the current and the requested set is written, so repeating a
    call is a no-op.
    """
    role = _require_role(db, role_id)
    wanted = _require_permission_ids(db, permission_ids)

    current = {rp.permission_id: rp for rp in role.permissions}
    removed = sorted(set(current) - wanted)
    added = sorted(wanted - set(current))

    for pid in removed:
        role.permissions.remove(current[pid])
    for pid in added:
        role.permissions.append(RolePermission(permission_id=pid))
    _commit(db)
    db.refresh(role)

    if added or removed:
        logger.info(
            f"Role {role.name}: +{len(added)} / -{len(removed)} permission(s)"
        )
        event_bus.publish_sync(
            AppEvent.ROLE_PERMISSIONS_CHANGED,
            {"role_id": role.id, "added": added, "removed": removed},
        )
    return role


def assign_permission_to_role(db: Session, role_id: int, permission_id: int) -> bool:
    """Grant one permission to a role. Returns False if it was already granted."""
    _require_role(db, role_id)
    if not get_permission(db, permission_id):
        raise NotFoundError("permission", permission_id)

    query = db.query(RolePermission).filter(
        RolePermission.role_id == role_id,
        RolePermission.permission_id == permission_id,
    )
    if query.first():
        return False

    db.add(RolePermission(role_id=role_id, permission_id=permission_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # Granted concurrently by another writer
        if query.first():
            return False
        # Otherwise the role or permission went away underneath us
        _require_role(db, role_id)
        if not get_permission(db, permission_id):
            raise NotFoundError("permission", permission_id)
        raise
    except SQLAlchemyError:
        db.rollback()
        raise

    event_bus.publish_sync(
        AppEvent.ROLE_PERMISSIONS_CHANGED,
        {"role_id": role_id, "added": [permission_id], "removed": []},
    )
    return True


def remove_permission_from_role(
    db: Session, role_id: int, permission_id: int
) -> bool:
    """Revoke one permission from a role. Returns False if it was not granted."""
    deleted = (
        db.query(RolePermission)
        .filter(
            RolePermission.role_id == role_id,
            RolePermission.permission_id == permission_id,
        )
        .delete(synchronize_session="fetch")
    )
    _commit(db)

    if deleted:
        event_bus.publish_sync(
            AppEvent.ROLE_PERMISSIONS_CHANGED,
            {"role_id": role_id, "added": [], "removed": [permission_id]},
        )
    return bool(deleted)


# -- User-role assignment ----------------------------------------------------


def get_user_roles(db: Session, user_id: int) -> list[Role]:
    """Get the roles a user holds."""
    return (
        db.query(Role)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.name)
        .all()
    )


def get_users_by_role(db: Session, role_id: int) -> list[User]:
    """Get the users holding a role."""
    return (
        db.query(User)
        .join(UserRole, UserRole.user_id == User.id)
        .filter(UserRole.role_id == role_id)
        .order_by(User.username)
        .all()
    )


def assign_role_to_user(
    db: Session,
    user_id: int,
    role_id: int,
    assigned_by_id: int | None = None,
) -> UserRole:
    """Assign a role to a user, returning the existing edge if already held."""
    _require_user(db, user_id)
    role = _require_role(db, role_id)

    query = db.query(UserRole).filter(
        UserRole.user_id == user_id, UserRole.role_id == role_id
    )
    existing = query.first()
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role_id, assigned_by_id=assigned_by_id)
    db.add(user_role)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # Assigned concurrently by another writer
        existing = query.first()
        if existing:
            return existing
        # Otherwise the user or role went away underneath us
        _require_user(db, user_id)
        _require_role(db, role_id)
        raise
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(user_role)

    logger.info(f"Assigned role {role.name} to user {user_id}")
    event_bus.publish_sync(
        AppEvent.USER_ROLE_ASSIGNED,
        {"user_id": user_id, "role_id": role_id, "assigned_by_id": assigned_by_id},
    )
    return user_role


def remove_role_from_user(db: Session, user_id: int, role_id: int) -> bool:
    """Remove a role from a user. Returns True if removed, False if not held."""
    user_role = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role_id == role_id)
        .first()
    )
    if not user_role:
        return False

    db.delete(user_role)
    _commit(db)

    logger.info(f"Removed role {role_id} from user {user_id}")
    event_bus.publish_sync(
        AppEvent.USER_ROLE_REMOVED, {"user_id": user_id, "role_id": role_id}
    )
    return True


def set_user_roles(
    db: Session,
    user_id: int,
    role_ids: Iterable[int],
    assigned_by_id: int | None = None,
) -> list[Role]:
    """Replace the full set of roles a user holds in one transaction."""
    user = _require_user(db, user_id)
    wanted = set(role_ids)
    if wanted:
        found = {r.id for r in db.query(Role.id).filter(Role.id.in_(wanted)).all()}
        missing = wanted - found
        if missing:
            raise NotFoundError("role", sorted(missing))

    current = {ur.role_id: ur for ur in user.user_roles}
    removed = sorted(set(current) - wanted)
    added = sorted(wanted - set(current))

    for rid in removed:
        user.user_roles.remove(current[rid])
    for rid in added:
        user.user_roles.append(UserRole(role_id=rid, assigned_by_id=assigned_by_id))
    _commit(db)

    for rid in added:
        event_bus.publish_sync(
            AppEvent.USER_ROLE_ASSIGNED,
            {"user_id": user_id, "role_id": rid, "assigned_by_id": assigned_by_id},
        )
    for rid in removed:
        event_bus.publish_sync(
            AppEvent.USER_ROLE_REMOVED, {"user_id": user_id, "role_id": rid}
        )
    return get_user_roles(db, user_id)
