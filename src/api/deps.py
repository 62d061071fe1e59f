# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""API dependencies for dependency injection."""

from collections.abc import Callable, Iterable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from src.database import get_db
from src.rbac import guards
from src.rbac.guards import Principal
from src.rbac.permissions import CorePermission

__all__ = [
    "get_current_principal",
    "get_db",
    "require_all_permissions",
    "require_any_permission",
    "require_authenticated",
    "require_legacy_admin",
    "require_ownership_or_permission",
    "require_permission",
    "require_role",
]


def get_current_principal(request: Request) -> Principal | None:
    """Get the principal the authentication middleware attached to the request."""
    return getattr(request.state, "principal", None)


def require_authenticated(
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_current_principal),
) -> Principal:
    """Dependency for routes that only need a logged-in, existing user."""
    return guards.authenticate(db, principal)


def require_permission(permission: CorePermission | str) -> Callable[..., Principal]:
    """Dependency for permission-based authorization."""

    def dependency(
        db: Session = Depends(get_db),
        principal: Principal | None = Depends(get_current_principal),
    ) -> Principal:
        return guards.authorize_permission(db, principal, permission)

    return dependency


def require_any_permission(
    permissions: Iterable[CorePermission | str],
) -> Callable[..., Principal]:
    """Dependency that passes when the user holds at least one permission."""
    candidates = list(permissions)

    def dependency(
        db: Session = Depends(get_db),
        principal: Principal | None = Depends(get_current_principal),
    ) -> Principal:
        return guards.authorize_any_permission(db, principal, candidates)

    return dependency


def require_all_permissions(
    permissions: Iterable[CorePermission | str],
) -> Callable[..., Principal]:
    """Dependency that passes only when the user holds every permission."""
    required = list(permissions)

    def dependency(
        db: Session = Depends(get_db),
        principal: Principal | None = Depends(get_current_principal),
    ) -> Principal:
        return guards.authorize_all_permissions(db, principal, required)

    return dependency


def require_role(role_name: str) -> Callable[..., Principal]:
    """Dependency for role-based authorization."""

    def dependency(
        db: Session = Depends(get_db),
        principal: Principal | None = Depends(get_current_principal),
    ) -> Principal:
        return guards.authorize_role(db, principal, role_name)

    return dependency


def _owner_id_from_request(request: Request, owner_id_param: str) -> int | None:
    raw = request.path_params.get(owner_id_param)
    if raw is None:
        raw = request.query_params.get(owner_id_param)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def require_ownership_or_permission(
    permission: CorePermission | str, owner_id_param: str = "user_id"
) -> Callable[..., Principal]:
    """Dependency letting users reach their own data, others need the permission.

    The owner id is read from the path parameter named ``owner_id_param``,
    falling back to a query parameter of the same name.
    """

    def dependency(
        request: Request,
        db: Session = Depends(get_db),
        principal: Principal | None = Depends(get_current_principal),
    ) -> Principal:
        owner_id = _owner_id_from_request(request, owner_id_param)
        return guards.authorize_owner_or_permission(db, principal, owner_id, permission)

    return dependency


def require_legacy_admin(
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_current_principal),
) -> Principal:
    """Dependency for coarse admin-only routes keyed on the legacy role flag."""
    return guards.authorize_legacy_admin(db, principal)
