# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Seeding of the core permission catalog and the default roles."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.models import Permission, Role, RolePermission
from src.rbac.permissions import CORE_PERMISSIONS, resource_of
from src.rbac.roles import DEFAULT_ROLES

from . import rbac_service

logger = logging.getLogger(__name__)


def seed_rbac_data(db: Session) -> None:
    """Seeds the database with core permissions and default roles.

    This function is idempotent. Roles that already exist keep whatever
    permissions an administrator has given them.
    @param db: SQLAlchemy Session object
    """
    created_permissions = 0
    for perm_data in CORE_PERMISSIONS:
        if not rbac_service.get_permission_by_name(db, perm_data["name"]):
            db.add(
                Permission(
                    name=perm_data["name"],
                    description=perm_data["description"],
                    resource=resource_of(perm_data["name"]),
                )
            )
            created_permissions += 1
    db.flush()

    for role_data in DEFAULT_ROLES:
        role = rbac_service.get_role_by_name(db, role_data["name"])
        if role:
            continue
        role = Role(
            name=role_data["name"],
            is_system=role_data["is_system"],
            description=role_data["description"],
        )
        db.add(role)
        db.flush()  # Flush to get the role ID

        for perm_name in role_data["permissions"]:
            permission = (
                db.query(Permission).filter(Permission.name == perm_name).first()
            )
            if permission:
                db.add(RolePermission(role_id=role.id, permission_id=permission.id))
        logger.info(f"Seeded role {role.name}")

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    if created_permissions:
        logger.info(f"Seeded {created_permissions} core permission(s)")
