"""Tests for cherry_pick_action/utils/logging_config.py."""

import json
import logging

import pytest
import structlog

from cherry_pick_action.exceptions import ConfigurationError
from cherry_pick_action.utils.logging_config import COMPONENT, configure_logging, parse_level


@pytest.fixture(autouse=True)
def reset_structlog():
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class TestParseLevel:
    """Tests for parse_level."""

    @pytest.mark.parametrize(
        "name,level",
        [
            ("debug", logging.DEBUG),
            ("INFO", logging.INFO),
            ("", logging.INFO),
            ("warn", logging.WARNING),
            (" warning ", logging.WARNING),
            ("error", logging.ERROR),
        ],
    )
    def test_known_levels(self, name, level):
        """Should map supported names."""
        assert parse_level(name) == level

    def test_unknown_level(self):
        """Should reject unsupported names."""
        with pytest.raises(ConfigurationError, match="unsupported log level 'trace'"):
            parse_level("trace")


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output(self, capsys):
        """Should emit JSON lines carrying the component."""
        configure_logging("info", "json")

        structlog.get_logger("test").info("target_evaluated", branch="release/v1")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "target_evaluated"
        assert event["branch"] == "release/v1"
        assert event["level"] == "info"
        assert event["component"] == COMPONENT
        assert "timestamp" in event

    def test_level_filtering(self, capsys):
        """Should drop events below the configured level."""
        configure_logging("warn", "json")
        log = structlog.get_logger("test")

        log.info("hidden")
        log.warning("shown")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out

    def test_text_output(self, capsys):
        """Should render console lines in text mode."""
        configure_logging("debug", "text")

        structlog.get_logger("test").debug("git_command", args=["status"])

        out = capsys.readouterr().out
        assert "git_command" in out
        assert "component=cherry-pick-action" in out

    def test_invalid_format(self):
        """Should reject unsupported formats."""
        with pytest.raises(ConfigurationError, match="unsupported log format"):
            configure_logging("info", "xml")
