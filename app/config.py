"""
ISP Manager - Configuration Settings

This module handles all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

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
    app_name: str = "ISP Manager"
    app_env: str = "development"
    debug: bool = True
    secret_key: str  # Required - must be set in .env
    api_version: str = "v1"
    public_base_url: str = "http://localhost:8000"  # Used to build gateway callback URLs

    # ===========================================
    # DATABASE CONFIGURATION
    # ===========================================
    database_url_async: str  # Required - must be set in .env

    # ===========================================
    # JWT AUTHENTICATION
    # ===========================================
    jwt_secret_key: str  # Required - must be set in .env
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    customer_token_expire_days: int = 30  # Customer portal session lifetime

    # ===========================================
    # PAYMENT GATEWAYS
    # Credentials live in tenant_payment_gateways /
    # payment_gateway_settings, not in the environment.
    # ===========================================
    payment_gateway_timeout_seconds: int = 30
    payment_currency: str = "BDT"

    @property
    def payment_callback_url(self) -> str:
        """Base URL that payment providers redirect back to."""
        return f"{self.public_base_url.rstrip('/')}/payment-callback"

    # ===========================================
    # PAYROLL
    # ===========================================
    # Comma-separated ISO weekday numbers (Monday=0 ... Sunday=6)
    weekend_days: str = "5,6"

    @property
    def weekend_days_set(self) -> frozenset:
        """Parse the configured weekend days into a set of weekday numbers."""
        return frozenset(
            int(day.strip()) for day in self.weekend_days.split(",") if day.strip()
        )

    # ===========================================
    # CORS SETTINGS
    # ===========================================
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:8000"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env.lower() == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every call.
    """
    return Settings()


# Export settings instance
settings = get_settings()
