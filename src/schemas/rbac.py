# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""RBAC schemas."""

import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.rbac.permissions import validate_permission_name


class PermissionSchema(BaseModel):
    """Schema representing a permission."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    resource: str | None


class PermissionCreateSchema(BaseModel):
    """Schema for adding a permission to the catalog."""

    name: str = Field(..., max_length=100)
    description: str | None = None

    @field_validator("name")
    @classmethod
    def name_shape(cls, value: str) -> str:
        if not validate_permission_name(value):
            raise ValueError("must look like 'resource:action'")
        return value


class RoleSchema(BaseModel):
    """Schema representing a role."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    is_system: bool
    description: str | None
    permission_ids: list[int] = []


class RoleWithPermissionsSchema(RoleSchema):
    """Schema representing a role along with its permissions."""

    permissions: list[PermissionSchema]


class RoleCreateSchema(BaseModel):
    """Schema for creating a new role."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    permission_ids: list[int] = []


class RoleUpdateSchema(BaseModel):
    """Schema for renaming a role or changing its description."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None


class RolePermissionsUpdateSchema(BaseModel):
    """Schema for replacing a role's permission set."""

    permission_ids: list[int]


class UserSummarySchema(BaseModel):
    """Schema representing a user as seen by role administration."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: str


class UserRoleSchema(BaseModel):
    """Schema representing a user's role assignment."""

    model_config = ConfigDict(from_attributes=True)

    user_id: int
    role_id: int
    assigned_by_id: int | None
    assigned_at: datetime.datetime
    role: RoleSchema


class UserRoleAssignmentSchema(BaseModel):
    """Schema for assigning a role to a user."""

    role_id: int


class UserRolesReplaceSchema(BaseModel):
    """Schema for replacing all roles of a user."""

    role_ids: list[int]


class UserPermissionsSchema(BaseModel):
    """Schema representing a user's roles and effective permissions."""

    user_id: int
    roles: list[RoleSchema]
    permissions: list[PermissionSchema]


class ReconciliationReportSchema(BaseModel):
    """Schema representing the outcome of a reconciliation run."""

    model_config = ConfigDict(from_attributes=True)

    admin_role_id: int
    admin_role_created: bool
    granted_user_ids: list[int]
    permission_count: int
    permissions_added: list[int]
    stale_admin_user_ids: list[int]
