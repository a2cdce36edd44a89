"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from calendar_mirror.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_postgres_url_uses_asyncpg(self):
        """Plain PostgreSQL URLs are rewritten to the asyncpg driver."""
        settings = Settings(database_url="postgresql://u:p@db:5432/cal")
        assert settings.database_url == "postgresql+asyncpg://u:p@db:5432/cal"

    def test_heroku_style_url_uses_asyncpg(self):
        settings = Settings(database_url="postgres://u:p@db/cal")
        assert settings.database_url == "postgresql+asyncpg://u:p@db/cal"

    def test_sqlite_url_untouched(self):
        settings = Settings(database_url="sqlite+aiosqlite:///./dev.db")
        assert settings.database_url == "sqlite+aiosqlite:///./dev.db"
        assert settings.is_sqlite is True

    def test_short_secret_rejected(self):
        """Secret key must be at least 32 characters."""
        with pytest.raises(ValidationError):
            Settings(secret_key="too-short", database_url="sqlite+aiosqlite://")

    def test_encryption_salt_derived_from_secret(self):
        a = Settings(secret_key="a" * 32, database_url="sqlite+aiosqlite://")
        b = Settings(secret_key="a" * 32, database_url="sqlite+aiosqlite://")
        assert a.encryption_salt == b.encryption_salt
        assert len(a.encryption_salt) == 32

    def test_explicit_encryption_salt_kept(self):
        settings = Settings(encryption_salt="my-salt", database_url="sqlite+aiosqlite://")
        assert settings.encryption_salt == "my-salt"

    def test_defaults_match_google_calendar_flow(self):
        settings = Settings(database_url="sqlite+aiosqlite://")
        assert settings.session_cookie_name == "session"
        assert settings.session_max_age_seconds == 7 * 24 * 3600
        assert settings.calendar_id == "primary"
        assert settings.webhook_ttl_days == 7
        assert "https://www.googleapis.com/auth/calendar.events" in settings.google_scopes

    def test_feature_flags(self):
        settings = Settings(
            database_url="sqlite+aiosqlite://",
            google_client_id=None,
            google_client_secret=None,
            webhook_url=None,
            environment="production",
        )
        assert settings.google_oauth_configured is False
        assert settings.webhooks_configured is False
        assert settings.is_production is True
