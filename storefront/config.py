"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. Secrets (SECRET_KEY, EMAIL_API_KEY) stay out of source code —
the .env file is gitignored.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from storefront.config import settings
    print(settings.SECRET_KEY)
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the storefront auth service.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Signs session tokens and keys the OTP digests
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Storefront API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Database ---
    # SQLite for local development; swap to an asyncpg URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/storefront.db"

    # --- Session tokens ---
    # REQUIRED: No default, forces the developer to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    USER_TOKEN_EXPIRE_DAYS: int = 7
    # Admin tokens are short-lived to limit the damage of a stolen admin token
    ADMIN_TOKEN_EXPIRE_MINUTES: int = 60

    # --- Lockout ---
    MAX_FAILED_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 30
    LOGIN_HISTORY_LIMIT: int = 10

    # --- One-time passwords ---
    OTP_EXPIRE_MINUTES: int = 10
    OTP_MAX_ATTEMPTS: int = 5

    # --- Password policy ---
    PASSWORD_MAX_AGE_DAYS: int = 90

    # --- Email relay ---
    # "console" logs outgoing mail instead of sending it (local development)
    EMAIL_BACKEND: Literal["brevo", "console"] = "brevo"
    EMAIL_API_URL: str = "https://api.brevo.com/v3/smtp/email"
    EMAIL_API_KEY: str = ""
    EMAIL_SENDER_NAME: str = "Storefront"
    EMAIL_SENDER_ADDRESS: str = "no-reply@storefront.local"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # --- CORS ---
    # Origins allowed to make cross-origin requests (storefront and admin UIs)
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
