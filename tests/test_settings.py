"""Unit tests for environment-driven settings."""
import pytest
from pydantic import ValidationError
from src.config.settings import Settings


REQUIRED_ENV = {
    "OPENAI_API_KEY": "sk-test",
    "SQL_SERVER_HOST": "sql.internal",
    "SQL_SERVER_DATABASE": "feedback",
    "SQL_SERVER_USERNAME": "svc_feedback",
    "SQL_SERVER_PASSWORD": "secret",
}


class TestSettings:
    """Test Settings loading."""

    def test_defaults(self, monkeypatch):
        for key, value in REQUIRED_ENV.items():
            monkeypatch.setenv(key, value)

        config = Settings(_env_file=None)

        assert config.openai_api_key == "sk-test"
        assert config.openai_llm_model == "gpt-4o"
        assert config.ai_timeout_seconds == 15.0
        assert config.batch_delay_seconds == 1.0
        assert config.sql_server_port == 1433
        assert config.report_default_days == 30

    def test_overrides_are_case_insensitive(self, monkeypatch):
        for key, value in REQUIRED_ENV.items():
            monkeypatch.setenv(key, value)
        monkeypatch.setenv("ai_timeout_seconds", "5")
        monkeypatch.setenv("BATCH_DELAY_SECONDS", "0.25")

        config = Settings(_env_file=None)

        assert config.ai_timeout_seconds == 5.0
        assert config.batch_delay_seconds == 0.25

    def test_missing_required_values(self, monkeypatch):
        for key in REQUIRED_ENV:
            monkeypatch.delenv(key, raising=False)

        with pytest.raises(ValidationError):
            Settings(_env_file=None)
