# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Role and permission administration endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from src.api.deps import (
    get_db,
    require_authenticated,
    require_ownership_or_permission,
    require_permission,
)
from src.rbac.guards import Principal
from src.rbac.permissions import CorePermission
from src.schemas.common import MessageResponse
from src.schemas.rbac import (
    PermissionCreateSchema,
    PermissionSchema,
    ReconciliationReportSchema,
    RoleCreateSchema,
    RolePermissionsUpdateSchema,
    RoleSchema,
    RoleUpdateSchema,
    RoleWithPermissionsSchema,
    UserPermissionsSchema,
    UserRoleAssignmentSchema,
    UserRoleSchema,
    UserRolesReplaceSchema,
    UserSummarySchema,
)
from src.services import permission_service, rbac_service, reconciliation_service

router = APIRouter(prefix="/rbac", tags=["rbac"])

manage_roles = require_permission(CorePermission.ADMIN_ROLES)
manage_users = require_permission(CorePermission.USERS_UPDATE)


# -- Permissions ---------------------------------------------------------------


@router.get("/permissions", response_model=list[PermissionSchema], summary="List all available permissions")
def list_permissions(
    resource: str | None = None,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Retrieve the permission catalog, optionally for one resource.
    Requires admin:roles permission.
    """
    if resource:
        return rbac_service.list_permissions_by_resource(db, resource)
    return rbac_service.list_permissions(db)


@router.post("/permissions", response_model=PermissionSchema, status_code=status.HTTP_201_CREATED, summary="Add a permission to the catalog")
def create_permission(
    permission_in: PermissionCreateSchema,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Add a new permission. Requires admin:roles permission."""
    return rbac_service.create_permission(db, permission_in.name, permission_in.description)


# -- Roles ---------------------------------------------------------------------


@router.get("/roles", response_model=list[RoleSchema], summary="List all roles")
def list_roles(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Retrieve all roles with the ids of their permissions.
    Requires admin:roles permission.
    """
    return rbac_service.list_roles(db)


@router.get("/roles/{role_id}", response_model=RoleWithPermissionsSchema, summary="Get a role by ID with its permissions")
def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Retrieve a specific role including its permissions.
    Requires admin:roles permission.
    """
    role = rbac_service.get_role(db, role_id)
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")

    permissions = rbac_service.get_role_permissions(db, role_id)
    return RoleWithPermissionsSchema(
        id=role.id,
        name=role.name,
        is_system=role.is_system,
        description=role.description,
        permission_ids=[p.id for p in permissions],
        permissions=[PermissionSchema.model_validate(p) for p in permissions],
    )


@router.post("/roles", response_model=RoleSchema, status_code=status.HTTP_201_CREATED, summary="Create a new custom role")
def create_role(
    role_in: RoleCreateSchema,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Create a new custom role with an optional initial permission set.
    Requires admin:roles permission.
    """
    return rbac_service.create_role(
        db, role_in.name, role_in.description, role_in.permission_ids
    )


@router.patch("/roles/{role_id}", response_model=RoleSchema, summary="Rename a role or change its description")
def update_role(
    role_id: int,
    role_in: RoleUpdateSchema,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Update a role's name and description.
    System roles cannot be renamed.
    Requires admin:roles permission.
    """
    return rbac_service.update_role(
        db, role_id, name=role_in.name, description=role_in.description
    )


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a custom role")
def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Delete a custom role that no user holds.
    System roles cannot be deleted.
    Requires admin:roles permission.
    """
    rbac_service.delete_role(db, role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/roles/{role_id}/users", response_model=list[UserSummarySchema], summary="List users holding a role")
def list_role_users(
    role_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Retrieve the users a role is assigned to. Requires admin:roles permission."""
    if not rbac_service.get_role(db, role_id):
        raise HTTPException(status_code=404, detail="Role not found")
    return rbac_service.get_users_by_role(db, role_id)


# -- Role permissions ----------------------------------------------------------


@router.get("/roles/{role_id}/permissions", response_model=list[PermissionSchema], summary="List a role's permissions")
def get_role_permissions(
    role_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Retrieve the permissions granted to a role. Requires admin:roles permission."""
    return rbac_service.get_role_permissions(db, role_id)


@router.put("/roles/{role_id}/permissions", response_model=RoleSchema, summary="Replace a role's permissions")
def set_role_permissions(
    role_id: int,
    permissions_in: RolePermissionsUpdateSchema,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Replace the full permission set of a role.
    Requires admin:roles permission.
    """
    return rbac_service.set_role_permissions(db, role_id, permissions_in.permission_ids)


@router.post("/roles/{role_id}/permissions/{permission_id}", response_model=MessageResponse, summary="Grant a permission to a role")
def assign_permission_to_role(
    role_id: int,
    permission_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Grant one permission to a role. Granting twice is harmless.
    Requires admin:roles permission.
    """
    added = rbac_service.assign_permission_to_role(db, role_id, permission_id)
    message = "Permission assigned" if added else "Permission already assigned"
    return MessageResponse(message=message)


@router.delete("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Revoke a permission from a role")
def remove_permission_from_role(
    role_id: int,
    permission_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Revoke one permission from a role. Requires admin:roles permission."""
    rbac_service.remove_permission_from_role(db, role_id, permission_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -- User roles ----------------------------------------------------------------


@router.get("/users/{user_id}/roles", response_model=list[RoleSchema], summary="Get a user's roles")
def get_user_roles(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(
        require_ownership_or_permission(CorePermission.USERS_READ, "user_id")
    ),
):
    """Retrieve the roles of a user.
    Users may read their own roles; others need users:read permission.
    """
    return rbac_service.get_user_roles(db, user_id)


@router.post("/users/{user_id}/roles", response_model=UserRoleSchema, summary="Assign a role to a user")
def assign_role_to_user(
    user_id: int,
    assignment: UserRoleAssignmentSchema,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_users),
):
    """Assign a role to a user. Assigning a held role returns the existing assignment.
    Requires users:update permission.
    """
    return rbac_service.assign_role_to_user(
        db, user_id, assignment.role_id, assigned_by_id=current_user.id
    )


@router.put("/users/{user_id}/roles", response_model=list[RoleSchema], summary="Replace a user's roles")
def set_user_roles(
    user_id: int,
    roles_in: UserRolesReplaceSchema,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_users),
):
    """Replace every role of a user. Requires users:update permission."""
    return rbac_service.set_user_roles(
        db, user_id, roles_in.role_ids, assigned_by_id=current_user.id
    )


@router.delete("/users/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Remove a role from a user")
def remove_role_from_user(
    user_id: int,
    role_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_users),
):
    """Remove a role from a user. Removing a role the user lacks is harmless.
    Requires users:update permission.
    """
    rbac_service.remove_role_from_user(db, user_id, role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users/{user_id}/permissions", response_model=UserPermissionsSchema, summary="Get a user's effective permissions")
def get_user_permissions(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(
        require_ownership_or_permission(CorePermission.USERS_READ, "user_id")
    ),
):
    """Retrieve a user's roles and effective permissions.
    Users may read their own; others need users:read permission.
    """
    return permission_service.get_user_permissions_summary(db, user_id)


@router.get("/me/permissions", response_model=UserPermissionsSchema, summary="Get current user's effective permissions")
def get_my_permissions(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(require_authenticated),
):
    """Retrieve the current user's roles and effective permissions."""
    return permission_service.get_user_permissions_summary(db, current_user.id)


# -- Maintenance ---------------------------------------------------------------


@router.post("/reconcile", response_model=ReconciliationReportSchema, summary="Reconcile legacy admins with RBAC")
def reconcile(
    db: Session = Depends(get_db),
    current_user: Principal = Depends(manage_roles),
):
    """Give every legacy admin the admin role and the admin role every permission.
    Safe to run repeatedly. Requires admin:roles permission.
    """
    return reconciliation_service.reconcile_admin_roles(db)
