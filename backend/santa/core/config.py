"""Application configuration loaded from environment variables.

Settings for the database, HTTP API, email delivery, verification limits,
draw notifications, site administration, and background cleanup. Uses
pydantic-settings for validation and .env file support.
"""

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Minimum length for SITE_ADMIN_PASSWORD in production
_MIN_SITE_ADMIN_PASSWORD_LENGTH = 12


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database (SQLite via aiosqlite)
    database_url: str = "sqlite+aiosqlite:///./secret_santa.db"

    # CORS
    # Production: Set ALLOWED_ORIGINS to the frontend domain
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Frontend URL (admin panel and reveal links in emails point here)
    frontend_url: str = "http://localhost:3000"

    # Email
    email_from: str = "noreply@secretsanta.local"
    resend_api_key: SecretStr = SecretStr("")
    email_timeout_seconds: float = 10.0

    # Email verification
    verification_code_ttl_minutes: int = 15
    verification_max_attempts: int = 5
    verification_resend_cooldown_seconds: int = 60
    verification_requests_per_hour: int = 3
    verification_resends_per_hour: int = 3

    # Games
    max_participants_per_game: int = 100
    participant_resend_cooldown_minutes: int = 60
    participant_resend_max: int = 3
    bulk_resend_cooldown_minutes: int = 60
    bulk_resend_max: int = 3

    # Site administration
    site_admin_password: SecretStr = SecretStr("")
    site_admin_session_hours: int = 24

    # Retention / background cleanup
    game_retention_days: int = 365
    cleanup_interval_seconds: int = 3600

    # Rate Limiting
    # Format: "count/period" (e.g., "60/minute", "5/hour")
    rate_limit_default: str = "60/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants.

        Checks:
        - Verification TTL, attempt limit and resend cooldown must be positive
        - CORS must not use wildcard origin
        - Production requires a Resend API key and a strong site admin password
        """
        positive_fields = (
            "verification_code_ttl_minutes",
            "verification_max_attempts",
            "verification_resend_cooldown_seconds",
            "max_participants_per_game",
        )
        for field in positive_fields:
            value = getattr(self, field)
            if value <= 0:
                msg = f"{field.upper()} must be positive. Got: {value}"
                raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "Set it to the frontend origin(s) explicitly."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if not self.resend_api_key.get_secret_value():
                msg = "RESEND_API_KEY must be set in production."
                raise ValueError(msg)

            password = self.site_admin_password.get_secret_value()
            if len(password) < _MIN_SITE_ADMIN_PASSWORD_LENGTH:
                msg = (
                    "SITE_ADMIN_PASSWORD must be at least "
                    f"{_MIN_SITE_ADMIN_PASSWORD_LENGTH} characters in production."
                )
                raise ValueError(msg)

        return self


settings = Settings()
