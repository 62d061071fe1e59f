# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Application configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a local .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Finance Tracker"
    database_url: str = "sqlite:///./finance_tracker.db"
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # Seed the core permission catalog and system roles on startup
    rbac_seed_on_startup: bool = True
    # Run the legacy admin flag reconciliation on startup
    rbac_reconcile_on_startup: bool = True


settings = Settings()
