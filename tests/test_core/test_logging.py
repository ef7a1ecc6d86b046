"""Tests for setup_logging — structlog over stdlib logging."""

from __future__ import annotations

import io
import json
import logging

import structlog

from src.core.config import LoggingConfig
from src.core.logging import setup_logging


class TestSetupLogging:
    def test_json_renderer(self) -> None:
        buf = io.StringIO()
        setup_logging(config=LoggingConfig(level="INFO", format="json"), stream=buf)
        structlog.stdlib.get_logger("test_json").info("rules_saved", new_hash="42")
        record = json.loads(buf.getvalue().strip().splitlines()[-1])
        assert record["event"] == "rules_saved"
        assert record["new_hash"] == "42"
        assert record["level"] == "info"

    def test_level_override_filters(self) -> None:
        buf = io.StringIO()
        setup_logging(level="WARNING", config=LoggingConfig(), stream=buf)
        structlog.stdlib.get_logger("test_level").info("hidden")
        assert "hidden" not in buf.getvalue()

    def test_json_includes_logger_name(self) -> None:
        buf = io.StringIO()
        setup_logging(config=LoggingConfig(level="INFO", format="json"), stream=buf)
        structlog.stdlib.get_logger("test_named").info("rules_reloaded")
        record = json.loads(buf.getvalue().strip().splitlines()[-1])
        assert record["logger"] == "test_named"

    def test_console_has_no_colour_off_terminal(self) -> None:
        buf = io.StringIO()
        setup_logging(config=LoggingConfig(level="INFO", format="console"), stream=buf)
        structlog.stdlib.get_logger("test_console").info("save_hook_succeeded")
        out = buf.getvalue()
        assert "save_hook_succeeded" in out
        assert "\x1b[" not in out

    def test_asyncio_kept_at_warning(self) -> None:
        setup_logging(level="DEBUG", config=LoggingConfig(), stream=io.StringIO())
        assert logging.getLogger("asyncio").level == logging.WARNING
