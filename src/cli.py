# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Maintenance commands for the RBAC tables."""

from __future__ import annotations

import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from src.database import SessionLocal
from src.services.rbac_seed_service import seed_rbac_data
from src.services.reconciliation_service import ReconciliationReport, reconcile_admin_roles

logger = logging.getLogger(__name__)


def print_report(report: ReconciliationReport) -> None:
    """Print a reconciliation report in human-readable form."""
    print(f"Admin role id:            {report.admin_role_id}")
    if report.admin_role_created:
        print("Admin role:               recreated")
    print(f"Users granted admin role: {report.granted_user_ids or 'none'}")
    print(f"Permissions on admin:     {report.permission_count}")
    print(f"Permissions added:        {report.permissions_added or 'none'}")
    if report.stale_admin_user_ids:
        print(
            "Holding admin without legacy flag (left unchanged): "
            f"{report.stale_admin_user_ids}"
        )


def run_reconcile(seed: bool) -> int:
    """Seed (optionally) and reconcile. Returns a process exit code."""
    db = SessionLocal()
    try:
        if seed:
            seed_rbac_data(db)
        report = reconcile_admin_roles(db)
    except SQLAlchemyError as e:
        logger.error(f"Reconciliation failed, safe to re-run: {e}")
        return 1
    finally:
        db.close()

    print_report(report)
    return 0


def main() -> None:
    """Entry point for the RBAC maintenance CLI."""
    parser = argparse.ArgumentParser(
        description="Keep legacy admin users and the RBAC admin role in agreement."
    )
    parser.add_argument(
        "command",
        choices=["reconcile", "seed"],
        default="reconcile",
        nargs="?",
        help="What to run (default: reconcile).",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Seed the core permission catalog before reconciling.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log each change as it is made.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s [%(name)s] %(message)s",
    )

    if args.command == "seed":
        db = SessionLocal()
        try:
            seed_rbac_data(db)
        except SQLAlchemyError as e:
            logger.error(f"Seeding failed: {e}")
            sys.exit(1)
        finally:
            db.close()
        print("RBAC catalog seeded.")
        sys.exit(0)

    sys.exit(run_reconcile(seed=args.seed))


if __name__ == "__main__":
    main()
