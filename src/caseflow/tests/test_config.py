"""
Tests for settings validation.
"""

import pytest
from pydantic import ValidationError

from caseflow.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        """Workflow periods default to 14 days."""
        settings = Settings(_env_file=None)

        assert settings.notification_period_days == 14
        assert settings.settlement_window_days == 14
        assert settings.enforce_notification_period is False
        assert settings.is_production is False

    def test_log_level_normalised(self):
        """Log levels are accepted in any case."""
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        """Unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty")

    def test_period_must_be_positive(self):
        """A zero-day window is rejected."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, settlement_window_days=0)

    def test_env_override(self, monkeypatch):
        """Environment variables override defaults."""
        monkeypatch.setenv("NOTIFICATION_PERIOD_DAYS", "21")
        monkeypatch.setenv("ENFORCE_NOTIFICATION_PERIOD", "true")
        settings = Settings(_env_file=None)

        assert settings.notification_period_days == 21
        assert settings.enforce_notification_period is True

    def test_production_rejects_debug(self):
        """Debug mode cannot be enabled in production."""
        with pytest.raises(ValidationError, match="DEBUG"):
            Settings(_env_file=None, environment="production", debug=True, database_url="postgresql+asyncpg://db/caseflow")

    def test_production_warns_on_sqlite(self):
        """SQLite in production is allowed but warned about."""
        with pytest.warns(UserWarning, match="SQLite"):
            settings = Settings(_env_file=None, environment="production")
        assert settings.is_production
