"""Shared fixtures for the attendance kiosk test-suite."""

from __future__ import annotations

import pytest
from kiosk_fakes import FakeFrameSource, fast_config

from biometrics import monitoring
from biometrics.config import RecognitionConfig


@pytest.fixture(autouse=True)
def reset_monitoring():
    monitoring.reset_for_tests()
    yield
    monitoring.reset_for_tests()


@pytest.fixture
def recognition_config() -> RecognitionConfig:
    return fast_config()


@pytest.fixture
def frame_source() -> FakeFrameSource:
    return FakeFrameSource()


@pytest.fixture(scope="session", autouse=True)
def close_database_connections():
    """Close database connections once the session finishes."""

    yield
    from django.db import connections

    for conn in connections.all():
        conn.close()
