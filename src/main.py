# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from src.config import settings
from src.database import SessionLocal
from src.rbac.exceptions import RbacError
from src.schemas.common import HealthResponse
from src.services.rbac_seed_service import seed_rbac_data
from src.services.reconciliation_service import reconcile_admin_roles

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    # Startup: make sure the catalog exists and legacy admins hold the admin role
    db = SessionLocal()
    try:
        if settings.rbac_seed_on_startup:
            logger.info("Seeding RBAC catalog...")
            seed_rbac_data(db)
        if settings.rbac_reconcile_on_startup:
            report = reconcile_admin_roles(db)
            logger.info(
                f"Reconciled RBAC: {len(report.granted_user_ids)} admin(s) granted, "
                f"{report.permission_count} permission(s) on admin role"
            )
    except SQLAlchemyError as e:
        logger.error(f"RBAC startup tasks failed: {e}")
    finally:
        db.close()

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title=settings.app_name,
    description="Personal finance tracker: authorization engine and role administration",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RbacError)
async def rbac_error_handler(request: Request, exc: RbacError) -> JSONResponse:
    """Render RBAC errors with their status code and payload."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(OperationalError)
async def database_unavailable_handler(
    request: Request, exc: OperationalError
) -> JSONResponse:
    """The store is unreachable: the caller may retry."""
    logger.error(f"Database unavailable during {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Database unavailable"},
        headers={"Retry-After": "5"},
    )


@app.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")


# Import and include API router after it's created
from src.api.v1.router import api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")
