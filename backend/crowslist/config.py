"""
Crowslist Backend — Application Configuration
===============================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
       A bad value (unknown log level, too few bcrypt rounds) fails at import,
       not in the middle of a request.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time.

Backend selection:
    The persistence backend is chosen by DATABASE_URL alone:
        sqlite+aiosqlite:///./crowslist.db               → embedded single-file store
        postgresql+asyncpg://user:pw@host:5432/crowslist → networked store
    Nothing else in the codebase branches on the backend except the
    Database gateway itself.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development. Production
    deployments should at least set DATABASE_URL, CORS_ORIGINS,
    SESSION_COOKIE_SECURE=true and EXPOSE_VERIFICATION_CODE=false.
    """

    # ── Database ──────────────────────────────────────────────────────────
    # Default is the embedded store so a fresh checkout runs without Postgres.
    database_url: str = Field(
        default="sqlite+aiosqlite:///./crowslist.db",
        description="Async SQLAlchemy URL (sqlite+aiosqlite or postgresql+asyncpg)",
    )

    # Pool sizing only applies to networked backends; SQLite ignores these.
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=5, ge=0, le=50)
    db_pool_pre_ping: bool = Field(default=True)

    # What: Startup schema creation is retried while the database comes up
    # (docker-compose starts the API and Postgres together).
    startup_retry_attempts: int = Field(default=5, ge=1, le=20)
    startup_retry_wait: int = Field(default=2, ge=1, le=30)

    # What: Insert the sample users and listings at startup.
    seed_sample_data: bool = Field(default=False)

    # ── Accounts ──────────────────────────────────────────────────────────
    # Only addresses ending in @<institutional_email_domain> may register.
    institutional_email_domain: str = Field(default="asu.edu")

    # True: register → verify-email → login.
    # False: register logs the user in immediately, login skips the verified check.
    require_email_verification: bool = Field(default=True)

    # Development convenience: return the verification code in the API response.
    # The code is logged either way (there is no outbound mail integration).
    expose_verification_code: bool = Field(default=True)

    # bcrypt cost factor. 10 is the floor; raise it as hardware gets faster.
    bcrypt_rounds: int = Field(default=10, ge=10, le=16)

    @field_validator("institutional_email_domain")
    @classmethod
    def normalize_domain(cls, v: str) -> str:
        """Strips a leading '@' and lowercases, so '@ASU.edu' and 'asu.edu' agree."""
        domain = v.strip().lstrip("@").lower()
        if not domain:
            raise ValueError("institutional_email_domain must not be empty")
        return domain

    # ── Sessions ──────────────────────────────────────────────────────────
    session_ttl_hours: int = Field(default=24, ge=1, le=24 * 30)

    # False: expiry is fixed at creation. True: every authenticated request
    # pushes the expiry out by another session_ttl_hours.
    session_rolling: bool = Field(default=False)

    session_cookie_name: str = Field(default="crowslist_sid")
    session_cookie_secure: bool = Field(default=False)

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_hours * 3600

    # ── Uploads ───────────────────────────────────────────────────────────
    storage_root: str = Field(default="./uploads")

    # 5MB per image, at most 5 images per listing
    max_file_size: int = Field(default=5_242_880, ge=1_048_576, le=52_428_800)
    max_images_per_listing: int = Field(default=5, ge=1, le=20)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Format: Comma-separated URLs
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # What: Per-IP sliding window on login/register/verify endpoints
    # Why: Slows down password guessing and verification-code guessing
    auth_rate_limit_requests: int = Field(default=30, ge=1, le=100_000)
    auth_rate_limit_window: int = Field(default=900, ge=1, le=86400)  # seconds

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Flags development-only settings left on.
        When:  Called during app startup (lifespan); problems are logged, not fatal.
        """
        problems = []
        if self.expose_verification_code:
            problems.append(
                "EXPOSE_VERIFICATION_CODE is on: verification codes are returned "
                "in API responses. Turn it off outside development."
            )
        if not self.session_cookie_secure:
            problems.append(
                "SESSION_COOKIE_SECURE is off: session cookies will be sent over plain HTTP."
            )
        if problems:
            raise ValueError(
                "Configuration check:\n" + "\n".join(f"  - {p}" for p in problems)
            )


# Singleton instance, imported throughout the application
settings = Settings()
