# tests/test_logging_config.py
"""
Tests for the structured logging configuration.
"""

import json
import logging
import sys

from ops.logging_config import APP_LOGGERS, JsonFormatter, get_logging_config


class TestGetLoggingConfig:
    def test_json_in_production(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = get_logging_config(debug=False)

        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"][""]["level"] == "INFO"
        assert config["loggers"]["django.db.backends"]["handlers"] == ["null"]

    def test_console_in_debug(self, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = get_logging_config(debug=True)

        assert config["handlers"]["console"]["formatter"] == "verbose"
        assert config["loggers"][""]["level"] == "DEBUG"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "console")
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        config = get_logging_config(debug=False)

        assert config["handlers"]["console"]["formatter"] == "verbose"
        for name in APP_LOGGERS:
            assert config["loggers"][name]["level"] == "WARNING"

    def test_app_loggers_are_configured(self):
        config = get_logging_config()
        assert set(APP_LOGGERS) == {"catalog", "events", "ops"}
        for name in APP_LOGGERS:
            assert config["loggers"][name]["handlers"] == ["console"]


class TestJsonFormatter:
    def _record(self, message, **extra):
        record = logging.LogRecord(
            name="events.ingestion",
            level=logging.INFO,
            pathname=__file__,
            lineno=10,
            msg=message,
            args=(),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_standard_fields(self):
        entry = json.loads(JsonFormatter().format(self._record("Stored event")))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "events.ingestion"
        assert entry["message"] == "Stored event"
        assert entry["location"]["line"] == 10
        assert "extra" not in entry

    def test_extra_fields(self):
        entry = json.loads(JsonFormatter().format(self._record("x", event_name="purchase", handle=object())))

        assert entry["extra"]["event_name"] == "purchase"
        assert entry["extra"]["handle"].startswith("<object")

    def test_exception_is_included(self):
        try:
            raise RuntimeError("poll failed")
        except RuntimeError:
            record = self._record("failed")
            record.exc_info = sys.exc_info()

        entry = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: poll failed" in entry["exception"]
