"""Unit tests for docrag.utils.logging."""

from __future__ import annotations

import logging

import pytest
import structlog

from docrag.utils.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def _restore_logging(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    library_levels = {n: logging.getLogger(n).level for n in ("openai", "httpx", "httpcore")}
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, lib_level in library_levels.items():
        logging.getLogger(name).setLevel(lib_level)
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_client_libraries_held_at_warning(self) -> None:
        configure_logging("info")

        assert logging.getLogger().level == logging.INFO
        for name in ("openai", "httpx", "httpcore"):
            assert logging.getLogger(name).level == logging.WARNING

    def test_debug_lets_client_libraries_through(self) -> None:
        configure_logging("DEBUG")

        for name in ("openai", "httpx", "httpcore"):
            assert logging.getLogger(name).level == logging.DEBUG

    def test_reconfiguring_keeps_a_single_root_handler(self) -> None:
        configure_logging()
        configure_logging()

        assert len(logging.getLogger().handlers) == 1

    def test_json_output_when_production(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_ENV", "production")
        configure_logging()

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_output_in_development(self) -> None:
        configure_logging()

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)


def test_get_logger_configures_on_first_use() -> None:
    structlog.reset_defaults()
    assert not structlog.is_configured()

    get_logger("docrag.test")

    assert structlog.is_configured()
