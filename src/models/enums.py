# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Enumeration types for database models."""

from enum import Enum


class LegacyRole(str, Enum):
    """Single-value role flag stored directly on a user.

    Predates the role/permission tables. Still read by coarse admin checks
    and kept in agreement with RBAC by the reconciliation routine.
    """

    ADMIN = "admin"
    USER = "user"
