"""Unit tests for structlog configuration."""

import logging
from unittest.mock import MagicMock

import pytest
import structlog

from infrastructure.logging import _resolve_level, configure_logging


class TestResolveLevel:
    def test_named_level(self):
        assert _resolve_level("warning") == logging.WARNING

    def test_numeric_level_passes_through(self):
        assert _resolve_level(logging.DEBUG) == logging.DEBUG

    def test_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("STUDENTS_LOG_LEVEL", "error")
        assert _resolve_level(None) == logging.ERROR

    def test_defaults_to_info(self, monkeypatch):
        monkeypatch.delenv("STUDENTS_LOG_LEVEL", raising=False)
        assert _resolve_level(None) == logging.INFO

    def test_unknown_level_is_rejected(self):
        with pytest.raises(ValueError):
            _resolve_level("loud")


class TestConfigureLogging:
    def teardown_method(self):
        structlog.reset_defaults()

    def test_json_renderer_without_tty(self, monkeypatch):
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        fake_sys = MagicMock()
        fake_sys.stdout.isatty.return_value = False
        monkeypatch.setattr("infrastructure.logging.sys", fake_sys)

        configure_logging("info")

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer_when_color_forced(self, monkeypatch):
        monkeypatch.setenv("FORCE_COLOR", "1")

        configure_logging("info")

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
