# tests/unit/logging/test_logging.py - v2
"""Tests for logging/ - context variables, formatters, handlers, setup."""

from __future__ import annotations

import json
import logging

import pytest

from semkb.logging.context import (
    clear_context,
    get_context,
    set_operation_context,
    set_request_context,
)
from semkb.logging.handlers import create_rotating_handler, parse_size
from semkb.logging.logger import JsonFormatter, TextFormatter, get_logger, setup_logging


def _record(msg: str = "Hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="semkb.test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_context()
    yield
    clear_context()


class TestContext:
    def test_empty_by_default(self):
        assert get_context().as_dict() == {}

    def test_request_and_operation(self):
        set_request_context("req-1")
        set_operation_context("search", provider="openai")
        ctx = get_context()
        assert ctx.as_dict() == {"request_id": "req-1", "operation": "search", "provider": "openai"}


class TestJsonFormatter:
    def test_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert parsed["logger"] == "semkb.test"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_context_and_data(self):
        set_request_context("req-9")
        parsed = json.loads(JsonFormatter().format(_record(data={"k": 3})))
        assert parsed["context"]["request_id"] == "req-9"
        assert parsed["data"] == {"k": 3}


class TestTextFormatter:
    def test_includes_context(self):
        set_request_context("req-2")
        set_operation_context("store")
        output = TextFormatter().format(_record("Hello text"))
        assert "[req-2]" in output
        assert "(store)" in output
        assert output.endswith("- Hello text")


class TestHandlers:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [("10MB", 10 * 1024**2), ("512KB", 512 * 1024), ("1GB", 1024**3), ("10mb", 10 * 1024**2), (42, 42)],
    )
    def test_parse_size(self, size, expected):
        assert parse_size(size) == expected

    def test_invalid_size(self):
        with pytest.raises(ValueError, match="Invalid size"):
            parse_size("10bytes")

    def test_rotating_handler(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "nested" / "semkb.log", rotation="1MB", retention=5)
        try:
            assert handler.maxBytes == 1024 * 1024
            assert handler.backupCount == 5
            assert (tmp_path / "nested").is_dir()
        finally:
            handler.close()


class TestSetupLogging:
    def test_get_logger_namespace(self):
        assert get_logger("cache").name == "semkb.cache"

    def test_configures_handlers(self, tmp_path):
        root = logging.getLogger("semkb")
        try:
            setup_logging(level="DEBUG", log_format="text", log_file=str(tmp_path / "x.log"))
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
            assert isinstance(root.handlers[0].formatter, TextFormatter)
            setup_logging()
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers.clear()
            root.setLevel(logging.NOTSET)

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown log format"):
            setup_logging(log_format="xml")
