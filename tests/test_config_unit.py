"""
Unit tests for environment-driven settings.
"""

import pytest

from cdc_client.config.settings import (
    CDCSettings,
    ClientConfig,
    Neo4jSettings,
    Settings,
    get_env_float,
    get_env_int,
    get_settings,
)
from cdc_client.errors import ConfigurationError


class TestEnvHelpers:
    """Tests for environment parsing helpers."""

    def test_int_and_float(self, monkeypatch):
        """Test numeric parsing with fallback."""
        monkeypatch.setenv("CDC_TEST_INT", "42")
        monkeypatch.setenv("CDC_TEST_FLOAT", "not-a-number")

        assert get_env_int("CDC_TEST_INT", 1) == 42
        assert get_env_float("CDC_TEST_FLOAT", 0.5) == 0.5


class TestSettings:
    """Tests for settings sections."""

    def test_defaults(self, monkeypatch):
        """Test defaults without environment overrides."""
        for key in ("NEO4J_URI", "NEO4J_DATABASE", "CDC_POLL_INTERVAL"):
            monkeypatch.delenv(key, raising=False)

        settings = Settings()

        assert settings.neo4j.uri == "neo4j://localhost:7687"
        assert settings.neo4j.database is None
        assert settings.cdc.poll_interval == 1.0

    def test_environment_overrides(self, monkeypatch):
        """Test values are read from the environment."""
        monkeypatch.setenv("NEO4J_URI", "neo4j+s://graph.example.com")
        monkeypatch.setenv("NEO4J_DATABASE", "movies")
        monkeypatch.setenv("CDC_POLL_INTERVAL", "0.2")

        assert Neo4jSettings().uri == "neo4j+s://graph.example.com"
        assert Neo4jSettings().database == "movies"
        assert CDCSettings().poll_interval == 0.2

    def test_get_settings_is_cached(self):
        """Test settings are built once."""
        get_settings.cache_clear()

        assert get_settings() is get_settings()


class TestClientConfig:
    """Tests for ClientConfig validation."""

    def test_build(self):
        """Test valid configuration."""
        config = ClientConfig.build(name="orders", poll_interval=0)

        assert config.name == "orders"
        assert config.poll_interval == 0

    def test_invalid_poll_interval(self):
        """Test validation errors become ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Invalid client configuration"):
            ClientConfig.build(poll_interval=-0.1)

    def test_from_settings(self):
        """Test config derived from settings."""
        settings = Settings(cdc=CDCSettings(poll_interval=3.0))

        assert ClientConfig.from_settings(settings).poll_interval == 3.0
