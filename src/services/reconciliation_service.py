# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Reconciliation of the legacy admin flag with the RBAC tables.

Two phases, each committed on its own and each idempotent, so an
interrupted run is repaired by running again:

1. every user whose legacy role is ``admin`` holds the ``admin`` role;
2. the ``admin`` role holds the whole permission catalog.

Synchronization is one way. Nobody loses the ``admin`` role here: users
holding it without the legacy flag are only reported.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from src.events import AppEvent, event_bus
from src.models import Permission, Role, User, UserRole
from src.models.enums import LegacyRole
from src.rbac.roles import ADMIN_ROLE, DEFAULT_ROLES
from src.services import rbac_service

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """Outcome of a reconciliation run."""

    admin_role_id: int
    admin_role_created: bool = False
    granted_user_ids: list[int] = field(default_factory=list)
    permission_count: int = 0
    permissions_added: list[int] = field(default_factory=list)
    stale_admin_user_ids: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(
            self.admin_role_created or self.granted_user_ids or self.permissions_added
        )


def _ensure_admin_role(db: Session) -> tuple[Role, bool]:
    role = rbac_service.get_role_by_name(db, ADMIN_ROLE)
    if role:
        return role, False
    defaults = next(r for r in DEFAULT_ROLES if r["name"] == ADMIN_ROLE)
    role = rbac_service.create_role(
        db, ADMIN_ROLE, description=defaults["description"], is_system=True
    )
    logger.warning(f"Admin role was missing and has been recreated (id={role.id})")
    return role, True


def grant_admin_role_to_legacy_admins(db: Session, admin_role: Role) -> list[int]:
    """Phase 1: give the admin role to every legacy admin lacking it."""
    holders = {
        row.user_id
        for row in db.query(UserRole.user_id)
        .filter(UserRole.role_id == admin_role.id)
        .all()
    }
    legacy_admins = (
        db.query(User.id)
        .filter(User.role == LegacyRole.ADMIN.value)
        .order_by(User.id)
        .all()
    )
    granted = []
    for row in legacy_admins:
        if row.id in holders:
            continue
        rbac_service.assign_role_to_user(db, row.id, admin_role.id)
        granted.append(row.id)
    return granted


def sync_admin_permissions(db: Session, admin_role: Role) -> tuple[int, list[int]]:
    """Phase 2: make the admin role's permission set equal the catalog.

    Returns the catalog size and the permission ids that had to be added.
    """
    before = set(admin_role.permission_ids)
    all_ids = [row.id for row in db.query(Permission.id).all()]
    rbac_service.set_role_permissions(db, admin_role.id, all_ids)
    return len(all_ids), sorted(set(all_ids) - before)


def find_stale_admins(db: Session, admin_role: Role) -> list[int]:
    """Users holding the admin role whose legacy flag is not ``admin``."""
    rows = (
        db.query(User.id)
        .join(UserRole, UserRole.user_id == User.id)
        .filter(UserRole.role_id == admin_role.id, User.role != LegacyRole.ADMIN.value)
        .order_by(User.id)
        .all()
    )
    return [row.id for row in rows]


def reconcile_admin_roles(db: Session) -> ReconciliationReport:
    """Bring the RBAC tables in line with the legacy admin flag."""
    admin_role, created = _ensure_admin_role(db)
    report = ReconciliationReport(admin_role_id=admin_role.id, admin_role_created=created)

    report.granted_user_ids = grant_admin_role_to_legacy_admins(db, admin_role)
    report.permission_count, report.permissions_added = sync_admin_permissions(
        db, admin_role
    )
    report.stale_admin_user_ids = find_stale_admins(db, admin_role)

    if report.stale_admin_user_ids:
        logger.warning(
            "Users hold the admin role without the legacy admin flag: "
            f"{report.stale_admin_user_ids}"
        )
    logger.info(
        f"RBAC reconciliation: {len(report.granted_user_ids)} user(s) granted admin, "
        f"{len(report.permissions_added)} permission(s) added to admin role"
    )
    event_bus.publish_sync(
        AppEvent.RBAC_RECONCILED,
        {
            "admin_role_id": report.admin_role_id,
            "granted_user_ids": report.granted_user_ids,
            "permissions_added": report.permissions_added,
            "stale_admin_user_ids": report.stale_admin_user_ids,
        },
    )
    return report
