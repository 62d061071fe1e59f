# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tests for reconciliation_service."""

from src.events import AppEvent
from src.models import Role
from src.models.enums import LegacyRole
from src.rbac.permissions import CorePermission
from src.rbac.roles import ADMIN_ROLE
from src.services import permission_service, rbac_service, reconciliation_service


def test_legacy_admin_gains_admin_role(seeded, make_user):
    alice = make_user("alice", role=LegacyRole.ADMIN)
    make_user("bob")

    report = reconciliation_service.reconcile_admin_roles(seeded)

    assert report.granted_user_ids == [alice.id]
    assert permission_service.has_role(seeded, alice.id, ADMIN_ROLE)
    assert permission_service.has_permission(seeded, alice.id, CorePermission.ADMIN_ROLES)
    assert report.changed


def test_second_run_changes_nothing(seeded, make_user):
    make_user("alice", role=LegacyRole.ADMIN)
    reconciliation_service.reconcile_admin_roles(seeded)

    report = reconciliation_service.reconcile_admin_roles(seeded)

    assert report.granted_user_ids == []
    assert report.permissions_added == []
    assert report.admin_role_created is False
    assert not report.changed


def test_admin_role_gains_new_catalog_entries(seeded):
    permission = rbac_service.create_permission(seeded, "reports:export")

    report = reconciliation_service.reconcile_admin_roles(seeded)

    admin = rbac_service.get_role_by_name(seeded, ADMIN_ROLE)
    assert permission.id in admin.permission_ids
    assert report.permissions_added == [permission.id]
    assert report.permission_count == len(CorePermission) + 1


def test_trimmed_admin_role_is_restored(seeded):
    admin = rbac_service.get_role_by_name(seeded, ADMIN_ROLE)
    rbac_service.set_role_permissions(seeded, admin.id, [])

    report = reconciliation_service.reconcile_admin_roles(seeded)

    assert len(report.permissions_added) == len(CorePermission)
    assert len(rbac_service.get_role_permissions(seeded, admin.id)) == len(CorePermission)


def test_stale_admins_are_reported_not_removed(seeded, make_user):
    former = make_user("former")
    admin = rbac_service.get_role_by_name(seeded, ADMIN_ROLE)
    rbac_service.assign_role_to_user(seeded, former.id, admin.id)

    report = reconciliation_service.reconcile_admin_roles(seeded)

    assert report.stale_admin_user_ids == [former.id]
    assert permission_service.has_role(seeded, former.id, ADMIN_ROLE)


def test_missing_admin_role_is_recreated(seeded, make_user):
    alice = make_user("alice", role=LegacyRole.ADMIN)
    # System roles cannot be deleted through the service
    seeded.query(Role).filter(Role.name == ADMIN_ROLE).delete()
    seeded.commit()

    report = reconciliation_service.reconcile_admin_roles(seeded)

    admin = rbac_service.get_role_by_name(seeded, ADMIN_ROLE)
    assert report.admin_role_created
    assert admin.is_system
    assert report.admin_role_id == admin.id
    assert report.granted_user_ids == [alice.id]


def test_reconcile_publishes_audit_event(seeded, events, make_user):
    alice = make_user("alice", role=LegacyRole.ADMIN)

    reconciliation_service.reconcile_admin_roles(seeded)

    reconciled = [e for e in events if e.event_type == AppEvent.RBAC_RECONCILED]
    assert len(reconciled) == 1
    assert reconciled[0].data["granted_user_ids"] == [alice.id]


def test_reconcile_on_empty_database(db_session, make_user):
    alice = make_user("alice", role=LegacyRole.ADMIN)

    report = reconciliation_service.reconcile_admin_roles(db_session)

    assert report.admin_role_created
    assert report.permission_count == 0
    assert report.granted_user_ids == [alice.id]
