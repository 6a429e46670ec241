"""Tests for structured logging setup and run context binding."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest
import structlog

from stockalert.core.config import reset_settings
from stockalert.core.logging import run_context, setup_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    reset_settings()
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class TestSetupLogging:
    def test_level_override(self) -> None:
        setup_logging(level="DEBUG", fmt="console")
        assert logging.getLogger().level == logging.DEBUG
        assert len(logging.getLogger().handlers) == 1

    def test_http_loggers_quieted(self) -> None:
        setup_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging(level="chatty")
        assert logging.getLogger().level == logging.INFO


class TestRunContext:
    def test_binds_and_unbinds(self) -> None:
        with run_context(health_check_id=7):
            assert structlog.contextvars.get_contextvars()["health_check_id"] == 7
        assert "health_check_id" not in structlog.contextvars.get_contextvars()
