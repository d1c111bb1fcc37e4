"""Pytest configuration.

A single Qt application object is created for the session when PySide6 is
installed, so the bridge tests can create QObjects and deliver queued
signals. Core tests do not need it.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import pytest

from helpers.images import FakeCodec

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    # Import lazily so non-Qt environments can still import this conftest.
    try:
        from PySide6.QtCore import QCoreApplication
    except ImportError:
        return

    global _APP

    app = QCoreApplication.instance()
    # Keep a strong ref so it isn't GC'd mid-session.
    _APP = app if app is not None else QCoreApplication([])


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    try:
        from PySide6.QtCore import QCoreApplication
    except ImportError:
        return

    app = QCoreApplication.instance()
    if app is None:
        return
    app.quit()
    app.processEvents()


@pytest.fixture
def editor_log(caplog):
    """caplog attached to the project logger (which does not propagate)."""
    logger = logging.getLogger("pixel_editor")
    logger.addHandler(caplog.handler)
    caplog.set_level(logging.DEBUG, logger="pixel_editor")
    try:
        yield caplog
    finally:
        logger.removeHandler(caplog.handler)


@pytest.fixture
def fake_codec() -> FakeCodec:
    return FakeCodec()
