"""Application settings and configuration."""

import sys

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_JWT_DEFAULTS = {"change-me-in-production", "secret", "super-secret-jwt-token-with-at-least-32-characters"}


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "superintern"
    env: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # console | json
    allowed_origins: str = "http://localhost:3000"
    site_url: str = "http://localhost:3000"  # Used for share and redirect links

    # Database
    database_url: str = "sqlite:///./superintern.db"

    # Session tokens issued by the hosted auth provider
    auth_jwt_secret: str = "change-me-in-production"
    auth_jwt_algorithm: str = "HS256"
    auth_jwt_audience: str | None = "authenticated"

    # Identity provider webhooks (Svix signing secret, "whsec_...")
    clerk_webhook_secret: str | None = None

    # Referral program
    referral_tasks_required: int = 3
    referral_points: int = 50
    referral_convert_unattributed_visits: bool = True

    # Task marketplace
    paid_task_min_points: int = 100

    # Store retries (transient errors only)
    store_retry_attempts: int = 3
    store_retry_delay: float = 0.5


# Global settings instance
settings = Settings()

# ── Security validation ──────────────────────────────────────────────
if settings.env == "production":
    if settings.auth_jwt_secret in _INSECURE_JWT_DEFAULTS or len(settings.auth_jwt_secret) < 32:
        print(
            "\n❌  FATAL: AUTH_JWT_SECRET is insecure or too short (min 32 chars).\n"
            "   Use the JWT secret of your auth provider project.\n",
            file=sys.stderr,
        )
        sys.exit(1)
