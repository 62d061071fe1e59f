# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Services package."""
from src.services import (
    permission_service,
    rbac_seed_service,
    rbac_service,
    reconciliation_service,
)

__all__ = [
    "permission_service",
    "rbac_seed_service",
    "rbac_service",
    "reconciliation_service",
]
