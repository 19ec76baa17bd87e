"""Tests for application configuration.

Covers defaults, positive-value checks, CORS wildcard rejection and
production requirements.
"""

import pytest
from pydantic import ValidationError

from santa.core.config import Settings

_PRODUCTION = "production"
_STRONG_PASSWORD = "a-long-admin-password"


class TestDefaults:
    """Defaults match the documented limits."""

    def test_verification_defaults(self):
        s = Settings()
        assert s.verification_code_ttl_minutes == 15
        assert s.verification_max_attempts == 5
        assert s.verification_resend_cooldown_seconds == 60

    def test_game_defaults(self):
        s = Settings()
        assert s.max_participants_per_game == 100
        assert s.participant_resend_max == 3
        assert s.game_retention_days == 365

    def test_database_is_sqlite(self):
        assert Settings().database_url.startswith("sqlite+aiosqlite://")


class TestValidation:
    """Configuration invariants."""

    @pytest.mark.parametrize(
        "field",
        [
            "verification_code_ttl_minutes",
            "verification_max_attempts",
            "verification_resend_cooldown_seconds",
            "max_participants_per_game",
        ],
    )
    def test_rejects_non_positive_limits(self, field):
        with pytest.raises(ValidationError) as exc_info:
            Settings(**{field: 0})
        assert f"{field.upper()} must be positive" in str(exc_info.value)

    def test_rejects_wildcard_cors(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(allowed_origins=["*"])
        assert "wildcard" in str(exc_info.value)


class TestProductionSecurityValidation:
    """Tests for production security requirements."""

    def test_requires_resend_api_key(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(environment=_PRODUCTION, site_admin_password=_STRONG_PASSWORD)
        assert "RESEND_API_KEY" in str(exc_info.value)

    def test_requires_strong_admin_password(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(
                environment=_PRODUCTION,
                resend_api_key="re_test_key",
                site_admin_password="short",
            )
        assert "SITE_ADMIN_PASSWORD" in str(exc_info.value)

    def test_accepts_complete_production_config(self):
        s = Settings(
            environment=_PRODUCTION,
            resend_api_key="re_test_key",
            site_admin_password=_STRONG_PASSWORD,
        )
        assert s.site_admin_password.get_secret_value() == _STRONG_PASSWORD

    def test_development_allows_missing_secrets(self):
        s = Settings(environment="development")
        assert s.resend_api_key.get_secret_value() == ""
