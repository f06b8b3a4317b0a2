"""
Unit Tests - Configuration
"""
import pytest
from pydantic import ValidationError

from opinion_warehouse.config.settings import DatabaseSettings, EtlSettings


class TestEtlSettings:
    """Tests for EtlSettings"""

    def test_defaults(self):
        etl = EtlSettings()

        assert etl.commit_every == 50
        assert etl.batch_key == 1
        assert etl.response_time_range == (10, 300)
        assert etl.source_names == ["Survey CSV", "Web Reviews", "Social Media API"]
        assert etl.channel_names[:2] == ["Online Survey", "Web"]

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ETL_COMMIT_EVERY", "100")

        assert EtlSettings().commit_every == 100

    def test_response_range_must_be_ordered(self):
        with pytest.raises(ValidationError):
            EtlSettings(response_time_min=300, response_time_max=10)

    def test_commit_every_positive(self):
        with pytest.raises(ValidationError):
            EtlSettings(commit_every=0)


class TestDatabaseSettings:
    """Tests for DatabaseSettings"""

    def test_async_url(self):
        db = DatabaseSettings(host="db", port=5433, name="dw", user="etl", password="pw")

        assert db.async_url == "postgresql+asyncpg://etl:pw@db:5433/dw"

    def test_url_override(self):
        assert DatabaseSettings(url="sqlite+aiosqlite:///dw.db").async_url == "sqlite+aiosqlite:///dw.db"


class TestLogging:
    """Tests for configure_logging"""

    def test_configure_logging_sets_level(self):
        import logging

        from opinion_warehouse.config.logging import configure_logging

        configure_logging("DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        configure_logging("WARNING")

    def test_warehouse_log_context(self):
        import structlog

        from opinion_warehouse.config.logging import enter_phase, warehouse_log_context

        with warehouse_log_context(3, "nightly"):
            assert structlog.contextvars.get_contextvars()["phase"] is None
            enter_phase("date")
            bound = structlog.contextvars.get_contextvars()

        assert bound == {"etl_batch_key": 3, "batch_name": "nightly", "phase": "date"}
        assert "etl_batch_key" not in structlog.contextvars.get_contextvars()
