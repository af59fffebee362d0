"""Tests for settings loading and logging setup."""

import logging

import pytest
from rich.logging import RichHandler

from sync_platform.agents import SchemaDiscoveryAgent, SchemaMappingAgent
from sync_platform.scheduling import JobScheduler
from sync_platform.shared.config import Settings, configure_logging
from sync_platform.shared.errors import ConfigurationError


class TestSettings:
    """Test suite for environment-driven settings."""

    def test_defaults(self):
        """Test an empty environment yields the defaults."""
        settings = Settings.from_env(env={})
        assert settings == Settings()
        assert settings.automap_threshold == 0.7
        assert settings.job_error_history == 10

    def test_overrides(self):
        """Test SYNC_* variables override the defaults."""
        settings = Settings.from_env(env={
            "SYNC_DATABASE_URL": "sqlite:///:memory:",
            "SYNC_MESSAGE_BUS_URL": "redis://localhost:6379/0",
            "SYNC_AUTOMAP_THRESHOLD": "0.85",
            "SYNC_DISCOVERY_MAX_SAMPLES": "3",
            "SYNC_LOG_LEVEL": "debug",
        })
        assert settings.database_url == "sqlite:///:memory:"
        assert settings.message_bus_url == "redis://localhost:6379/0"
        assert settings.automap_threshold == 0.85
        assert settings.discovery_max_samples == 3
        assert settings.log_level == "DEBUG"

    def test_blank_value_falls_back_to_default(self):
        """Test an empty string is treated as unset."""
        assert Settings.from_env(env={"SYNC_JOB_ERROR_HISTORY": ""}).job_error_history == 10

    def test_invalid_number(self):
        """Test a non-numeric value raises ConfigurationError."""
        with pytest.raises(ConfigurationError, match="SYNC_DISCOVERY_MAX_SAMPLES"):
            Settings.from_env(env={"SYNC_DISCOVERY_MAX_SAMPLES": "many"})

    def test_dotenv_file(self, tmp_path, monkeypatch):
        """Test values are read from a .env file."""
        monkeypatch.delenv("SYNC_AUTOMAP_THRESHOLD", raising=False)
        dotenv = tmp_path / ".env"
        dotenv.write_text("SYNC_AUTOMAP_THRESHOLD=0.5\n")

        settings = Settings.from_env(dotenv_path=dotenv)

        assert settings.automap_threshold == 0.5


def test_configure_logging_installs_rich_handler(monkeypatch):
    """Test the logging preset uses a Rich handler."""
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)

    configure_logging("debug")

    assert any(isinstance(h, RichHandler) for h in root.handlers)
    assert root.level == logging.DEBUG


class TestSettingsWiring:
    """Test components built from settings pick up the configured values."""

    @pytest.fixture
    def settings(self):
        return Settings.from_env(env={
            "SYNC_AUTOMAP_THRESHOLD": "0.9",
            "SYNC_DISCOVERY_MAX_SAMPLES": "2",
            "SYNC_JOB_ERROR_HISTORY": "3",
        })

    def test_discovery_agent(self, message_bus, settings):
        agent = SchemaDiscoveryAgent.from_settings(message_bus, settings)

        schema = agent.discover_schema("product", [{"a": 1}, {"b": 2}, {"c": 3}])

        assert agent.max_samples == 2
        assert sorted(schema.fields) == ["a", "b"]

    def test_mapping_agent(self, message_bus, settings):
        agent = SchemaMappingAgent.from_settings(message_bus, settings, agent_id="configured")

        assert agent.agent_id == "configured"
        assert agent.threshold == 0.9

    @pytest.mark.asyncio
    async def test_job_scheduler(self, pipeline, config_store, settings):
        scheduler = JobScheduler.from_settings(pipeline, config_store, settings)
        try:
            job = await scheduler.schedule_job(
                "conn-products", "shop", "marketplace", "tr-products", {}, "1h"
            )
            assert scheduler.error_history == 3
            assert job.errors.maxlen == 3
        finally:
            await scheduler.shutdown()
