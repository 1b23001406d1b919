"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This keeps secrets out of source code — the .env file is
gitignored.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from vouchify.config import settings
    print(settings.PLATFORM_FEE_BPS)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Vouchify API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens

    SCRATCH_CODE_KEY is optional at startup so the read-only parts of the
    API keep working, but listing a voucher without it fails with a
    ConfigurationError instead of storing an unencrypted code.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Vouchify API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for single-node deployments; swap to a PostgreSQL URL (asyncpg) for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/vouchify.db"

    # --- Authentication ---
    # REQUIRED: no default, so a real secret has to be set
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # --- Scratch code encryption ---
    # 32-byte AES-256-GCM key as 64 hex characters
    # Generate with: python -c "import secrets; print(secrets.token_hex(32))"
    SCRATCH_CODE_KEY: str | None = None

    # --- Fees (basis points: 1500 = 15%) ---
    PLATFORM_FEE_BPS: int = 1500
    COMPANY_SHARE_BPS: int = 500
    DEFAULT_CURRENCY: str = "INR"

    # --- Manual payments ---
    # Purchases still awaiting confirmation after this many hours are failed
    # and their reserved unit is released by the maintenance sweep.
    PAYMENT_CONFIRMATION_TIMEOUT_HOURS: int = 48

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:5173"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
