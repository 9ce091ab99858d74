"""Tests for ``pgkv.logging``."""

from __future__ import annotations

import json
import logging

import structlog

from pgkv.logging import LogContext, configure_logging, get_logger


class TestConfigureLogging:
    def setup_method(self):
        root = logging.getLogger()
        self._handlers = root.handlers[:]
        self._level = root.level

    def teardown_method(self):
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()
        root = logging.getLogger()
        root.handlers[:] = self._handlers
        root.setLevel(self._level)
        logging.getLogger("pgkv").setLevel(logging.NOTSET)

    def test_json_output(self, capsys):
        configure_logging(level="INFO", json_format=True, service="kv-test")
        get_logger("pgkv.test").info("store_initialized", table="sessions")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "store_initialized"
        assert record["table"] == "sessions"
        assert record["service.name"] == "kv-test"
        assert record["level"] == "info"
        assert record["logger"] == "pgkv.test"
        assert "timestamp" in record

    def test_level_filtering(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        get_logger("pgkv.test").info("hidden")
        assert "hidden" not in capsys.readouterr().err

    def test_log_context(self, capsys):
        configure_logging(level="INFO", json_format=True)
        logger = get_logger("pgkv.test")

        with LogContext(table="sessions"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = (json.loads(line) for line in capsys.readouterr().err.strip().splitlines()[-2:])
        assert inside["table"] == "sessions"
        assert "table" not in outside
