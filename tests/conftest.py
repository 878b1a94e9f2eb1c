"""Pytest configuration and fixtures."""

import logging
import sys

import pytest


@pytest.fixture(autouse=True)
def cleanup_loggers():
    """Clean up outmatch loggers after each test to prevent name collisions."""
    yield

    loggers_to_remove = [
        name
        for name in logging.Logger.manager.loggerDict.keys()
        if name.startswith("outmatch")
    ]

    for name in loggers_to_remove:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
        del logging.Logger.manager.loggerDict[name]


@pytest.fixture
def python_script(tmp_path):
    """Write a Python script into tmp_path; return the command to run it."""

    def _write(body: str, name: str = "script.py") -> list[str]:
        path = tmp_path / name
        path.write_text(body)
        return [sys.executable, str(path)]

    return _write
