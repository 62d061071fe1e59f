# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Authorization guards.

Each guard takes the session and the principal explicitly and either
returns the authenticated principal or raises. A denial is always the
positive outcome of a completed check; if the store fails while checking,
the guard raises :class:`AuthorizationUnavailableError` instead.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.events import AppEvent, event_bus
from src.models import User
from src.models.enums import LegacyRole
from src.rbac.exceptions import (
    AuthorizationUnavailableError,
    ForbiddenError,
    UnauthenticatedError,
)
from src.rbac.permissions import CorePermission, permission_name
from src.services import permission_service

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Principal:
    """The authenticated caller a request is made on behalf of."""

    id: int
    legacy_role: str = LegacyRole.USER.value

    @property
    def is_legacy_admin(self) -> bool:
        return self.legacy_role == LegacyRole.ADMIN.value


def _checked(check: Callable[[], T], what: str) -> T:
    """Run a store-backed check, turning store failures into unavailability."""
    try:
        return check()
    except SQLAlchemyError as exc:
        logger.exception(f"Authorization check failed: {what}")
        raise AuthorizationUnavailableError(
            "Authorization check unavailable"
        ) from exc


def _deny(principal: Principal, error: ForbiddenError) -> ForbiddenError:
    event_bus.publish_sync(
        AppEvent.ACCESS_DENIED, {"user_id": principal.id, **error.to_dict()}
    )
    return error


def authenticate(db: Session, principal: Principal | None) -> Principal:
    """Confirm the principal still exists and is active.

    The returned principal carries the legacy role as currently stored.
    """
    if principal is None:
        raise UnauthenticatedError("Not authenticated")

    user = _checked(
        lambda: db.query(User).filter(User.id == principal.id).first(),
        f"lookup of user {principal.id}",
    )
    if not user or not user.is_active:
        raise UnauthenticatedError("User not found or inactive")
    return Principal(id=user.id, legacy_role=user.role)


def authorize_permission(
    db: Session, principal: Principal | None, permission: CorePermission | str
) -> Principal:
    """Require a single permission."""
    principal = authenticate(db, principal)
    name = permission_name(permission)
    allowed = _checked(
        lambda: permission_service.has_permission(db, principal.id, name),
        f"permission {name}",
    )
    if not allowed:
        raise _deny(
            principal, ForbiddenError("Insufficient permissions", required=name)
        )
    return principal


def authorize_any_permission(
    db: Session,
    principal: Principal | None,
    permissions: Iterable[CorePermission | str],
) -> Principal:
    """Require at least one of the permissions.

    The denial lists every candidate, not the ones that were missing.
    """
    principal = authenticate(db, principal)
    names = [permission_name(p) for p in permissions]
    allowed = _checked(
        lambda: permission_service.has_any_permission(db, principal.id, names),
        f"any of {names}",
    )
    if not allowed:
        raise _deny(
            principal, ForbiddenError("Insufficient permissions", required_any=names)
        )
    return principal


def authorize_all_permissions(
    db: Session,
    principal: Principal | None,
    permissions: Iterable[CorePermission | str],
) -> Principal:
    """Require every one of the permissions."""
    principal = authenticate(db, principal)
    names = [permission_name(p) for p in permissions]
    allowed = _checked(
        lambda: permission_service.has_all_permissions(db, principal.id, names),
        f"all of {names}",
    )
    if not allowed:
        raise _deny(
            principal, ForbiddenError("Insufficient permissions", required_all=names)
        )
    return principal


def authorize_role(
    db: Session, principal: Principal | None, role_name: str
) -> Principal:
    """Require a named role."""
    principal = authenticate(db, principal)
    allowed = _checked(
        lambda: permission_service.has_role(db, principal.id, role_name),
        f"role {role_name}",
    )
    if not allowed:
        raise _deny(
            principal, ForbiddenError("Insufficient role", required_role=role_name)
        )
    return principal


def authorize_owner_or_permission(
    db: Session,
    principal: Principal | None,
    owner_id: int | None,
    permission: CorePermission | str,
) -> Principal:
    """Allow the resource owner, or anyone holding the permission.

    The owner path does not touch the permission tables.
    """
    principal = authenticate(db, principal)
    if owner_id is not None and owner_id == principal.id:
        return principal

    name = permission_name(permission)
    allowed = _checked(
        lambda: permission_service.has_permission(db, principal.id, name),
        f"permission {name} on resource owned by {owner_id}",
    )
    if not allowed:
        raise _deny(
            principal,
            ForbiddenError(
                "Access denied: not resource owner and insufficient permissions",
                required=name,
            ),
        )
    return principal


def authorize_legacy_admin(db: Session, principal: Principal | None) -> Principal:
    """Coarse admin check on the legacy role flag alone."""
    principal = authenticate(db, principal)
    if not principal.is_legacy_admin:
        raise _deny(
            principal,
            ForbiddenError("Access denied", required_role=LegacyRole.ADMIN.value),
        )
    return principal
