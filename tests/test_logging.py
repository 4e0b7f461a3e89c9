"""
Tests for logging setup.
"""
import logging

import pytest
import structlog
from pythonjsonlogger.json import JsonFormatter

from license_bridge.monitoring.logging import QUIET_LOGGERS, build_processors, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.unit
def test_root_logger_gets_single_json_handler(test_settings, root_logger) -> None:
    setup_logging(test_settings)
    setup_logging(test_settings)

    root = root_logger
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JsonFormatter)
    assert root.level == logging.DEBUG
    for name in QUIET_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


@pytest.mark.unit
def test_events_carry_app_context(test_settings) -> None:
    processors = build_processors(test_settings)
    add_app_context = processors[-2]

    event = add_app_context(None, "info", {"event": "license_email_sent"})

    assert event["app_name"] == "license-bridge-test"
    assert event["app_env"] == "test"


@pytest.mark.unit
@pytest.mark.parametrize(
    "debug,renderer",
    [(False, structlog.processors.JSONRenderer), (True, structlog.dev.ConsoleRenderer)],
)
def test_renderer_follows_debug_flag(test_settings, debug: bool, renderer: type) -> None:
    settings = test_settings.model_copy(update={"debug": debug})
    assert isinstance(build_processors(settings)[-1], renderer)
