# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tests for the permission catalog and name helpers."""

import pytest

from src.rbac.exceptions import ForbiddenError, NotFoundError, RoleInUseError
from src.rbac.permissions import (
    CORE_PERMISSIONS,
    CorePermission,
    permission_name,
    resource_of,
    validate_permission_name,
)
from src.rbac.roles import ADMIN_PERMISSIONS, DEFAULT_ROLES, USER_ROLE


class TestCorePermission:
    def test_values_are_resource_action(self):
        for permission in CorePermission:
            assert validate_permission_name(permission.value)
            assert ":" in permission.value

    def test_catalog_has_description_for_every_member(self):
        assert [p["name"] for p in CORE_PERMISSIONS] == [p.value for p in CorePermission]
        assert all(p["description"] for p in CORE_PERMISSIONS)

    def test_admin_role_gets_whole_catalog(self):
        assert set(ADMIN_PERMISSIONS) == {p.value for p in CorePermission}

    def test_user_role_has_no_admin_permissions(self):
        user_role = next(r for r in DEFAULT_ROLES if r["name"] == USER_ROLE)
        assert not [p for p in user_role["permissions"] if p.startswith("admin:")]
        assert not [p for p in user_role["permissions"] if p.endswith(":read_all")]


class TestNameHelpers:
    def test_permission_name(self):
        assert permission_name(CorePermission.BUDGETS_DELETE) == "budgets:delete"
        assert permission_name("reports:export") == "reports:export"

    @pytest.mark.parametrize(
        "name, valid",
        [
            ("budgets:delete", True),
            ("users:reset_password", True),
            ("reports", True),
            ("Budgets:delete", False),
            ("budgets:", False),
            (":delete", False),
            ("budgets:delete:all", False),
            ("budgets delete", False),
            ("", False),
        ],
    )
    def test_validate_permission_name(self, name, valid):
        assert validate_permission_name(name) is valid

    def test_resource_of(self):
        assert resource_of("budgets:delete") == "budgets"
        assert resource_of("reports") is None


class TestErrorPayloads:
    def test_not_found_lists_ids(self):
        error = NotFoundError("permission", [7, 3])
        assert error.status_code == 404
        assert error.to_dict() == {"detail": "Permission not found: 3, 7"}

    def test_role_in_use_lists_users(self):
        users = [{"id": 1, "username": "alice", "email": "alice@example.com"}]
        error = RoleInUseError("auditor", users)
        assert error.status_code == 409
        assert error.to_dict()["users"] == users

    def test_forbidden_omits_unset_requirements(self):
        assert ForbiddenError("System roles cannot be deleted").to_dict() == {
            "detail": "System roles cannot be deleted"
        }
