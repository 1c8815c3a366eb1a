from __future__ import annotations

import io
import logging

import pytest

import spend_tracker.logging_setup as logging_setup


@pytest.fixture
def fresh_logging(monkeypatch: pytest.MonkeyPatch):
    pkg = logging.getLogger("spend_tracker")
    saved = (list(pkg.handlers), pkg.level, pkg.propagate)
    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    pkg.handlers = []
    yield pkg
    pkg.handlers, pkg.level, pkg.propagate = saved[0], saved[1], saved[2]


def test_level_resolution(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SPEND_TRACKER_LOG_LEVEL", "debug")
    assert logging_setup._parse_level(None) == logging.DEBUG
    assert logging_setup._parse_level("ERROR") == logging.ERROR
    assert logging_setup._parse_level(15) == 15

    monkeypatch.setenv("SPEND_TRACKER_LOG_LEVEL", "chatty")
    assert logging_setup._parse_level("nonsense") == logging.INFO


def test_configure_logging_attaches_one_handler(fresh_logging: logging.Logger):
    stream = io.StringIO()

    logging_setup.configure_logging("INFO", fmt="%(name)s %(message)s", stream=stream)
    logging_setup.configure_logging("DEBUG", stream=io.StringIO())
    logging_setup.get_logger("spend_tracker.pipeline").info("ingested %d", 3)

    assert len(fresh_logging.handlers) == 1
    assert stream.getvalue() == "spend_tracker.pipeline ingested 3\n"


def test_get_logger_is_silent_until_configured(fresh_logging: logging.Logger):
    logger = logging_setup.get_logger("spend_tracker.extract")

    assert logger.name == "spend_tracker.extract"
    assert any(isinstance(h, logging.NullHandler) for h in fresh_logging.handlers)
