# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Errors raised by the RBAC services and authorization guards.

Every error carries the HTTP status the API layer should answer with and a
``to_dict()`` payload. ``AuthorizationUnavailableError`` is kept apart from
the denials so monitoring can tell "access refused" from "the store is down".
"""

from typing import Any


class RbacError(Exception):
    """Base exception for RBAC errors."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serializable error payload."""
        return {"detail": self.message}


class DuplicateNameError(RbacError):
    """A role or permission with this name already exists."""

    status_code = 409

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind.capitalize()} with name '{name}' already exists")
        self.kind = kind
        self.name = name


class NotFoundError(RbacError):
    """A referenced role, permission or user does not exist."""

    status_code = 404

    def __init__(self, kind: str, identifiers: Any) -> None:
        if isinstance(identifiers, (list, tuple, set)):
            ids = ", ".join(str(i) for i in sorted(identifiers))
            message = f"{kind.capitalize()} not found: {ids}"
        else:
            message = f"{kind.capitalize()} not found: {identifiers}"
        super().__init__(message)
        self.kind = kind
        self.identifiers = identifiers


class InvalidNameError(RbacError):
    """A permission or role name does not have an acceptable shape."""

    status_code = 422


class RoleInUseError(RbacError):
    """A role cannot be deleted while users still hold it."""

    status_code = 409

    def __init__(self, role_name: str, users: list[dict[str, Any]]) -> None:
        super().__init__(
            f"Cannot delete role '{role_name}': it is assigned to {len(users)} user(s)"
        )
        self.role_name = role_name
        self.users = users

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "users": self.users}


class ForbiddenError(RbacError):
    """The caller may not perform this action.

    Raised both for missing capabilities and for attempts to rename or
    delete a system role.
    """

    status_code = 403

    def __init__(
        self,
        message: str,
        required: str | None = None,
        required_any: list[str] | None = None,
        required_all: list[str] | None = None,
        required_role: str | None = None,
    ) -> None:
        super().__init__(message)
        self.required = required
        self.required_any = required_any
        self.required_all = required_all
        self.required_role = required_role

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message}
        if self.required is not None:
            payload["required"] = self.required
        if self.required_any is not None:
            payload["required_any"] = self.required_any
        if self.required_all is not None:
            payload["required_all"] = self.required_all
        if self.required_role is not None:
            payload["required_role"] = self.required_role
        return payload


class UnauthenticatedError(RbacError):
    """No principal on the request, or the principal no longer exists."""

    status_code = 401


class AuthorizationUnavailableError(RbacError):
    """The store failed while an authorization decision was being made."""

    status_code = 503
