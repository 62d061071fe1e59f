# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Integration tests for role administration endpoints."""

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from src.database import get_db
from src.main import app
from src.models.enums import LegacyRole
from src.rbac.permissions import CorePermission
from src.rbac.roles import ADMIN_ROLE, USER_ROLE
from src.services import rbac_service


def permission_ids(db_session, *names) -> list[int]:
    return [rbac_service.get_permission_by_name(db_session, n).id for n in names]


class TestAuthentication:
    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_requires_authentication(self, client):
        response = client.get("/api/v1/rbac/roles")
        assert response.status_code == 401

    def test_inactive_user_is_unauthenticated(self, seeded, login_as, make_user):
        user = make_user("gone", is_active=False)
        response = login_as(user).get("/api/v1/rbac/me/permissions")
        assert response.status_code == 401

    def test_regular_user_is_forbidden(self, authenticated_client):
        response = authenticated_client.get("/api/v1/rbac/roles")
        assert response.status_code == 403
        assert response.json() == {
            "detail": "Insufficient permissions",
            "required": "admin:roles",
        }


class TestPermissionEndpoints:
    def test_list_permissions(self, admin_client):
        response = admin_client.get("/api/v1/rbac/permissions")
        assert response.status_code == 200
        assert len(response.json()) == len(CorePermission)

    def test_list_permissions_by_resource(self, admin_client):
        response = admin_client.get("/api/v1/rbac/permissions", params={"resource": "security"})
        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["security:read"]

    def test_create_permission(self, admin_client):
        response = admin_client.post(
            "/api/v1/rbac/permissions",
            json={"name": "reports:export", "description": "Export reports"},
        )
        assert response.status_code == 201
        assert response.json()["resource"] == "reports"

    def test_create_permission_duplicate(self, admin_client):
        response = admin_client.post(
            "/api/v1/rbac/permissions", json={"name": "budgets:read"}
        )
        assert response.status_code == 409

    def test_create_permission_bad_shape(self, admin_client):
        response = admin_client.post(
            "/api/v1/rbac/permissions", json={"name": "Budgets Read"}
        )
        assert response.status_code == 422


class TestRoleEndpoints:
    def test_list_roles(self, admin_client):
        response = admin_client.get("/api/v1/rbac/roles")
        assert response.status_code == 200
        names = {r["name"] for r in response.json()}
        assert names == {ADMIN_ROLE, USER_ROLE}

    def test_create_and_get_role(self, admin_client, seeded):
        ids = permission_ids(seeded, "budgets:read", "expenses:read")
        response = admin_client.post(
            "/api/v1/rbac/roles",
            json={"name": "auditor", "description": "Read-only", "permission_ids": ids},
        )
        assert response.status_code == 201
        role = response.json()
        assert role["is_system"] is False
        assert role["permission_ids"] == sorted(ids)

        response = admin_client.get(f"/api/v1/rbac/roles/{role['id']}")
        assert response.status_code == 200
        assert [p["name"] for p in response.json()["permissions"]] == [
            "budgets:read",
            "expenses:read",
        ]

    def test_get_unknown_role(self, admin_client):
        response = admin_client.get("/api/v1/rbac/roles/9999")
        assert response.status_code == 404

    def test_create_role_duplicate(self, admin_client):
        response = admin_client.post("/api/v1/rbac/roles", json={"name": USER_ROLE})
        assert response.status_code == 409

    def test_create_role_unknown_permission(self, admin_client):
        response = admin_client.post(
            "/api/v1/rbac/roles", json={"name": "broken", "permission_ids": [9999]}
        )
        assert response.status_code == 404
        assert "9999" in response.json()["detail"]

    def test_rename_role(self, admin_client, seeded):
        role = rbac_service.create_role(seeded, "auditor")
        response = admin_client.patch(
            f"/api/v1/rbac/roles/{role.id}", json={"name": "reviewer"}
        )
        assert response.status_code == 200
        assert response.json()["name"] == "reviewer"

    def test_rename_system_role_forbidden(self, admin_client, seeded):
        admin = rbac_service.get_role_by_name(seeded, ADMIN_ROLE)
        response = admin_client.patch(
            f"/api/v1/rbac/roles/{admin.id}", json={"name": "root"}
        )
        assert response.status_code == 403

    def test_delete_role(self, admin_client, seeded):
        role = rbac_service.create_role(
            seeded, "auditor", permission_ids=permission_ids(seeded, "budgets:read")
        )
        response = admin_client.delete(f"/api/v1/rbac/roles/{role.id}")
        assert response.status_code == 204
        assert admin_client.get(f"/api/v1/rbac/roles/{role.id}").status_code == 404

    def test_delete_system_role_forbidden(self, admin_client, seeded):
        admin = rbac_service.get_role_by_name(seeded, ADMIN_ROLE)
        response = admin_client.delete(f"/api/v1/rbac/roles/{admin.id}")
        assert response.status_code == 403
        assert response.json()["detail"] == "System roles cannot be deleted"

    def test_delete_role_in_use(self, admin_client, seeded, make_user):
        role = rbac_service.create_role(seeded, "auditor")
        carol = make_user("carol")
        rbac_service.assign_role_to_user(seeded, carol.id, role.id)

        response = admin_client.delete(f"/api/v1/rbac/roles/{role.id}")

        assert response.status_code == 409
        assert response.json()["users"] == [
            {"id": carol.id, "username": "carol", "email": "carol@example.com"}
        ]

    def test_list_role_users(self, admin_client, seeded, admin_user):
        admin = rbac_service.get_role_by_name(seeded, ADMIN_ROLE)
        response = admin_client.get(f"/api/v1/rbac/roles/{admin.id}/users")
        assert response.status_code == 200
        assert [u["username"] for u in response.json()] == ["admin"]


class TestRolePermissionEndpoints:
    def test_replace_role_permissions(self, admin_client, seeded):
        role = rbac_service.create_role(
            seeded, "auditor", permission_ids=permission_ids(seeded, "budgets:read")
        )
        ids = permission_ids(seeded, "expenses:read", "expenses:read_all")

        response = admin_client.put(
            f"/api/v1/rbac/roles/{role.id}/permissions", json={"permission_ids": ids}
        )

        assert response.status_code == 200
        assert response.json()["permission_ids"] == sorted(ids)
        listed = admin_client.get(f"/api/v1/rbac/roles/{role.id}/permissions").json()
        assert {p["name"] for p in listed} == {"expenses:read", "expenses:read_all"}

    def test_replace_with_unknown_permission_changes_nothing(self, admin_client, seeded):
        ids = permission_ids(seeded, "budgets:read")
        role = rbac_service.create_role(seeded, "auditor", permission_ids=ids)

        response = admin_client.put(
            f"/api/v1/rbac/roles/{role.id}/permissions",
            json={"permission_ids": [*ids, 9999]},
        )

        assert response.status_code == 404
        assert rbac_service.get_role(seeded, role.id).permission_ids == ids

    def test_grant_and_revoke_single_permission(self, admin_client, seeded):
        role = rbac_service.create_role(seeded, "auditor")
        (pid,) = permission_ids(seeded, "budgets:read")
        url = f"/api/v1/rbac/roles/{role.id}/permissions/{pid}"

        assert admin_client.post(url).json() == {"message": "Permission assigned"}
        assert admin_client.post(url).json() == {"message": "Permission already assigned"}
        assert admin_client.delete(url).status_code == 204
        assert rbac_service.get_role_permissions(seeded, role.id) == []


class TestUserRoleEndpoints:
    def test_assign_role(self, admin_client, admin_user, seeded, make_user):
        carol = make_user("carol")
        role = rbac_service.get_role_by_name(seeded, USER_ROLE)

        response = admin_client.post(
            f"/api/v1/rbac/users/{carol.id}/roles", json={"role_id": role.id}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["assigned_by_id"] == admin_user.id
        assert data["role"]["name"] == USER_ROLE

    def test_assign_role_twice_is_harmless(self, admin_client, seeded, make_user):
        carol = make_user("carol")
        role = rbac_service.get_role_by_name(seeded, USER_ROLE)
        url = f"/api/v1/rbac/users/{carol.id}/roles"

        first = admin_client.post(url, json={"role_id": role.id})
        second = admin_client.post(url, json={"role_id": role.id})

        assert first.status_code == second.status_code == 200
        assert len(rbac_service.get_user_roles(seeded, carol.id)) == 1

    def test_assign_role_to_unknown_user(self, admin_client, seeded):
        role = rbac_service.get_role_by_name(seeded, USER_ROLE)
        response = admin_client.post(
            "/api/v1/rbac/users/9999/roles", json={"role_id": role.id}
        )
        assert response.status_code == 404

    def test_replace_user_roles(self, admin_client, seeded, test_user):
        auditor = rbac_service.create_role(seeded, "auditor")
        response = admin_client.put(
            f"/api/v1/rbac/users/{test_user.id}/roles", json={"role_ids": [auditor.id]}
        )
        assert response.status_code == 200
        assert [r["name"] for r in response.json()] == ["auditor"]

    def test_remove_role(self, admin_client, seeded, test_user):
        role = rbac_service.get_role_by_name(seeded, USER_ROLE)
        response = admin_client.delete(
            f"/api/v1/rbac/users/{test_user.id}/roles/{role.id}"
        )
        assert response.status_code == 204
        assert rbac_service.get_user_roles(seeded, test_user.id) == []

    def test_regular_user_cannot_assign_roles(self, authenticated_client, seeded, test_user):
        admin = rbac_service.get_role_by_name(seeded, ADMIN_ROLE)
        response = authenticated_client.post(
            f"/api/v1/rbac/users/{test_user.id}/roles", json={"role_id": admin.id}
        )
        assert response.status_code == 403
        assert response.json()["required"] == "users:update"


class TestUserPermissionEndpoints:
    def test_owner_reads_own_roles(self, authenticated_client, test_user):
        response = authenticated_client.get(f"/api/v1/rbac/users/{test_user.id}/roles")
        assert response.status_code == 200
        assert [r["name"] for r in response.json()] == [USER_ROLE]

    def test_user_cannot_read_other_users_roles(
        self, authenticated_client, seeded, make_user
    ):
        other = make_user("other")
        response = authenticated_client.get(f"/api/v1/rbac/users/{other.id}/roles")
        assert response.status_code == 403

    def test_admin_reads_user_permissions(self, admin_client, test_user):
        response = admin_client.get(f"/api/v1/rbac/users/{test_user.id}/permissions")
        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == test_user.id
        names = {p["name"] for p in data["permissions"]}
        assert "expenses:create" in names
        assert "admin:roles" not in names

    def test_my_permissions(self, authenticated_client, test_user):
        response = authenticated_client.get("/api/v1/rbac/me/permissions")
        assert response.status_code == 200
        assert [r["name"] for r in response.json()["roles"]] == [USER_ROLE]

    def test_user_without_roles_sees_empty_permissions(self, seeded, login_as, make_user):
        nobody = make_user("nobody")
        response = login_as(nobody).get("/api/v1/rbac/me/permissions")
        assert response.status_code == 200
        assert response.json() == {"user_id": nobody.id, "roles": [], "permissions": []}


class TestReconcileEndpoint:
    def test_reconcile(self, admin_client, seeded, make_user):
        promoted = make_user("promoted", role=LegacyRole.ADMIN)

        response = admin_client.post("/api/v1/rbac/reconcile")

        assert response.status_code == 200
        data = response.json()
        assert data["granted_user_ids"] == [promoted.id]
        assert data["permission_count"] == len(CorePermission)
        assert data["stale_admin_user_ids"] == []

    def test_reconcile_requires_admin_roles(self, authenticated_client):
        response = authenticated_client.post("/api/v1/rbac/reconcile")
        assert response.status_code == 403


class TestStoreUnavailable:
    @pytest.fixture
    def broken_client(self, login_as, test_user, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'rbac.db'}")
        BrokenSession = sessionmaker(bind=engine)

        def override_get_db():
            session = BrokenSession()
            try:
                yield session
            finally:
                session.close()

        client = login_as(test_user)
        app.dependency_overrides[get_db] = override_get_db
        yield client
        engine.dispose()

    def test_guard_answers_503(self, broken_client):
        response = broken_client.get("/api/v1/rbac/roles")
        assert response.status_code == 503
        assert response.json() == {"detail": "Authorization check unavailable"}

    def test_grant_lookup_failure_answers_503(self, authenticated_client, seeded):
        # The user lookup still succeeds; only the grant tables are gone
        seeded.execute(text("DROP TABLE role_permissions"))
        seeded.execute(text("DROP TABLE user_roles"))
        seeded.commit()

        response = authenticated_client.get("/api/v1/rbac/roles")

        assert response.status_code == 503
        assert response.json() == {"detail": "Authorization check unavailable"}
