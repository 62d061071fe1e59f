# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Default roles seeded on first run."""

from .permissions import CORE_PERMISSIONS, CorePermission

ADMIN_ROLE = "admin"
USER_ROLE = "user"

# Admin always gets the full catalog; reconciliation keeps it that way
ADMIN_PERMISSIONS = [p["name"] for p in CORE_PERMISSIONS]

# Both defaults are system roles: they cannot be renamed or deleted
DEFAULT_ROLES = [
    {
        "name": ADMIN_ROLE,
        "is_system": True,
        "description": "Full system administrator with all permissions",
        "permissions": ADMIN_PERMISSIONS,
    },
    {
        "name": USER_ROLE,
        "is_system": True,
        "description": "Regular user with basic permissions",
        "permissions": [
            CorePermission.EXPENSES_CREATE.value,
            CorePermission.EXPENSES_READ.value,
            CorePermission.EXPENSES_UPDATE.value,
            CorePermission.EXPENSES_DELETE.value,
            CorePermission.BUDGETS_CREATE.value,
            CorePermission.BUDGETS_READ.value,
            CorePermission.BUDGETS_UPDATE.value,
            CorePermission.BUDGETS_DELETE.value,
            CorePermission.CATEGORIES_CREATE.value,
            CorePermission.CATEGORIES_READ.value,
            CorePermission.CATEGORIES_UPDATE.value,
            CorePermission.CATEGORIES_DELETE.value,
        ],
    },
]
