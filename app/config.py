"""
Ledger Reports - Configuration Settings

This module handles all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

from datetime import date
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===========================================
    # APPLICATION CONFIGURATION
    # ===========================================
    app_name: str = "Ledger Reports"
    app_env: str = "development"
    debug: bool = False

    # ===========================================
    # DATABASE CONFIGURATION
    # ===========================================
    database_url_async: str = "sqlite+aiosqlite:///./ledger_reports.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # ===========================================
    # REDIS CONFIGURATION
    # ===========================================
    redis_url: str = "redis://localhost:6379/0"

    # ===========================================
    # REPORT TICKETS
    # Backends: "redis" (shared across workers) or "memory" (single process)
    # Dispatch: "background" (asyncio task in the API process) or "celery"
    # ===========================================
    ticket_store_backend: str = "redis"
    ticket_key_prefix: str = "gl"
    ticket_ttl_hours: int = 6
    report_dispatch_mode: str = "background"

    @property
    def ticket_ttl_seconds(self) -> int:
        """Ticket state lifetime in the key-value store."""
        return self.ticket_ttl_hours * 3600

    # ===========================================
    # REPORT ARTIFACTS
    # ===========================================
    report_storage_path: str = "./storage"
    report_directory: str = "reports"
    report_retention_days: int = 2
    report_company_name: str = ""

    # ===========================================
    # LEDGER RULES
    # Beginning balances are authoritative as of baseline_date.
    # Accounts whose numeric prefix exceeds pnl_account_threshold are P&L,
    # except the retained earnings account which always carries forward.
    # ===========================================
    baseline_date: date = date(2024, 12, 31)
    retained_earnings_account_code: str = "4031"
    pnl_account_threshold: int = 4031

    # ===========================================
    # CORS CONFIGURATION
    # ===========================================
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
