"""Tests for settings and structured logging."""

import json
import logging

import pytest

from cognition_kernel.config import Settings
from cognition_kernel.observability import JSONFormatter, setup_logging


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.ledger_db_path == ":memory:"
        assert settings.default_max_autonomy == 3
        assert settings.plan_base_timeout_ms == 30_000

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("COGNITION_DEFAULT_MAX_AUTONOMY", "1")
        monkeypatch.setenv("COGNITION_AGENT_ID", "ops_agent")
        settings = Settings()
        assert settings.default_max_autonomy == 1
        assert settings.agent_id == "ops_agent"

    def test_autonomy_bounds(self):
        with pytest.raises(Exception):
            Settings(default_max_autonomy=4)


class TestLogging:
    def test_json_formatter_surfaces_extras(self):
        record = logging.LogRecord(
            "cognition_kernel.pipeline", logging.INFO, __file__, 1,
            "Cycle complete", None, None,
        )
        record.decision_id = "dec_1"
        record.status = "executed"

        payload = json.loads(JSONFormatter().format(record))
        assert payload["message"] == "Cycle complete"
        assert payload["level"] == "INFO"
        assert payload["decision_id"] == "dec_1"
        assert payload["status"] == "executed"
        assert "approver" not in payload

    def test_setup_is_idempotent(self):
        setup_logging("DEBUG", "json")
        setup_logging("WARNING", "text")
        logger = logging.getLogger("cognition_kernel")
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
