"""Tests for logging configuration."""

import json
import logging

import pytest

from readiness.core.config import Settings
from readiness.core.logging import (
    SensitiveDataFilter,
    StructuredFormatter,
    TextFormatter,
    get_logger,
    setup_logging,
    target_var,
)


def make_record(msg, *args, level=logging.INFO):
    return logging.LogRecord("readiness.test", level, __file__, 1, msg, args, None)


class TestSensitiveDataFilter:
    """Tests for credential redaction."""

    @pytest.mark.parametrize(
        "message,secret",
        [
            ("login with password=password123", "password123"),
            ("payload {'password': 'hunter2'}", "hunter2"),
            ('response {"access_token": "eyJabc"}', "eyJabc"),
            ("header authorization bearer eyJxyz", "eyJxyz"),
        ],
    )
    def test_redacts(self, message, secret):
        record = make_record(message)
        SensitiveDataFilter().filter(record)

        assert secret not in record.getMessage()
        assert "[REDACTED]" in record.getMessage()

    def test_formats_args_before_redacting(self):
        record = make_record("token=%s for %s", "abc123", "empire")
        SensitiveDataFilter().filter(record)

        assert record.getMessage() == "token=[REDACTED] for empire"

    def test_leaves_plain_messages(self):
        record = make_record("Attempt %d: indeterminate", 3)
        SensitiveDataFilter().filter(record)

        assert record.args == (3,)
        assert record.getMessage() == "Attempt 3: indeterminate"


class TestFormatters:
    """Tests for the text and JSON formatters."""

    def test_text_includes_target_tag(self):
        token = target_var.set("sliver")
        try:
            line = TextFormatter().format(make_record("polling"))
        finally:
            target_var.reset(token)

        assert "[sliver] readiness.test: polling" in line

    def test_text_without_target(self):
        line = TextFormatter().format(make_record("starting", level=logging.WARNING))

        assert "WARNING" in line
        assert "[" not in line

    def test_structured(self):
        token = target_var.set("mythic")
        try:
            data = json.loads(
                StructuredFormatter(include_location=True).format(make_record("up"))
            )
        finally:
            target_var.reset(token)

        assert data["message"] == "up"
        assert data["target"] == "mythic"
        assert data["logger"] == "readiness.test"
        assert data["thread"] == "MainThread"
        assert ":1 " in data["location"]


class TestSetupLogging:
    """Tests for setup_logging()."""

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(Settings(_env_file=None, log_level="debug", log_format="json"))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_text_format(self):
        setup_logging(Settings(_env_file=None, log_format="text"))
        assert isinstance(logging.getLogger().handlers[0].formatter, TextFormatter)

    def test_get_logger_prefix(self):
        assert get_logger("poller").name == "readiness.poller"


class TestSettings:
    """Tests for Settings validation."""

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, log_level="LOUD")

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("READINESS_DEFAULT_DEADLINE", "90")
        monkeypatch.setenv("READINESS_SHORT_MODE", "true")

        settings = Settings(_env_file=None)

        assert settings.default_deadline == 90.0
        assert settings.short_mode
