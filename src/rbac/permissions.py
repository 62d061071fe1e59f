# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Built-in permission catalog and permission name helpers."""

import re
from enum import Enum

PERMISSION_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*(?::[a-z][a-z0-9_]*)?$")


class CorePermission(str, Enum):
    """Capabilities shipped with the application.

    Permissions created at runtime are plain strings validated by
    :func:`validate_permission_name`; these members cover what the
    application itself checks for.
    """

    # User management
    USERS_CREATE = "users:create"
    USERS_READ = "users:read"
    USERS_UPDATE = "users:update"
    USERS_DELETE = "users:delete"
    USERS_SUSPEND = "users:suspend"
    USERS_RESET_PASSWORD = "users:reset_password"

    # Expenses
    EXPENSES_CREATE = "expenses:create"
    EXPENSES_READ = "expenses:read"
    EXPENSES_UPDATE = "expenses:update"
    EXPENSES_DELETE = "expenses:delete"
    EXPENSES_READ_ALL = "expenses:read_all"

    # Budgets
    BUDGETS_CREATE = "budgets:create"
    BUDGETS_READ = "budgets:read"
    BUDGETS_UPDATE = "budgets:update"
    BUDGETS_DELETE = "budgets:delete"
    BUDGETS_READ_ALL = "budgets:read_all"

    # Categories
    CATEGORIES_CREATE = "categories:create"
    CATEGORIES_READ = "categories:read"
    CATEGORIES_UPDATE = "categories:update"
    CATEGORIES_DELETE = "categories:delete"

    # Admin dashboard
    ADMIN_DASHBOARD = "admin:dashboard"
    ADMIN_STATS = "admin:stats"
    ADMIN_ROLES = "admin:roles"
    ADMIN_SYSTEM = "admin:system"

    # Backup & security
    BACKUP_CREATE = "backup:create"
    BACKUP_READ = "backup:read"
    BACKUP_DELETE = "backup:delete"
    BACKUP_DOWNLOAD = "backup:download"
    SECURITY_READ = "security:read"


_DESCRIPTIONS: dict[CorePermission, str] = {
    CorePermission.USERS_CREATE: "Create new users",
    CorePermission.USERS_READ: "View user information",
    CorePermission.USERS_UPDATE: "Update user information",
    CorePermission.USERS_DELETE: "Delete users",
    CorePermission.USERS_SUSPEND: "Suspend/reactivate users",
    CorePermission.USERS_RESET_PASSWORD: "Reset user passwords",
    CorePermission.EXPENSES_CREATE: "Create new expenses",
    CorePermission.EXPENSES_READ: "View expenses",
    CorePermission.EXPENSES_UPDATE: "Update expenses",
    CorePermission.EXPENSES_DELETE: "Delete expenses",
    CorePermission.EXPENSES_READ_ALL: "View all users expenses (admin)",
    CorePermission.BUDGETS_CREATE: "Create new budgets",
    CorePermission.BUDGETS_READ: "View budgets",
    CorePermission.BUDGETS_UPDATE: "Update budgets",
    CorePermission.BUDGETS_DELETE: "Delete budgets",
    CorePermission.BUDGETS_READ_ALL: "View all users budgets (admin)",
    CorePermission.CATEGORIES_CREATE: "Create new categories",
    CorePermission.CATEGORIES_READ: "View categories",
    CorePermission.CATEGORIES_UPDATE: "Update categories",
    CorePermission.CATEGORIES_DELETE: "Delete categories",
    CorePermission.ADMIN_DASHBOARD: "Access admin dashboard",
    CorePermission.ADMIN_STATS: "View system statistics",
    CorePermission.ADMIN_ROLES: "Manage roles and permissions",
    CorePermission.ADMIN_SYSTEM: "System administration",
    CorePermission.BACKUP_CREATE: "Create database backups",
    CorePermission.BACKUP_READ: "View database backups",
    CorePermission.BACKUP_DELETE: "Delete database backups",
    CorePermission.BACKUP_DOWNLOAD: "Download database backups",
    CorePermission.SECURITY_READ: "View security logs",
}

CORE_PERMISSIONS = [
    {"name": perm.value, "description": _DESCRIPTIONS[perm]} for perm in CorePermission
]


def permission_name(permission: "CorePermission | str") -> str:
    """Return the plain string name for an enum member or string."""
    if isinstance(permission, CorePermission):
        return permission.value
    return permission


def validate_permission_name(name: str) -> bool:
    """Check that a name has the ``resource:action`` (or bare ``resource``) shape."""
    return bool(PERMISSION_NAME_PATTERN.match(name))


def resource_of(name: str) -> str | None:
    """Return the resource category encoded in a permission name.

    >>> resource_of("budgets:delete")
    'budgets'
    >>> resource_of("reports") is None
    True
    """
    if ":" not in name:
        return None
    return name.split(":", 1)[0]
