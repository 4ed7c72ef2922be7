"""Shared fixtures for temporalschema tests."""

import pendulum
import pytest

from temporalschema.operations import OperationRegistry, register_all_operations
from temporalschema.provider import DateProvider

# A fixed instant most tests are built around
BASE = pendulum.datetime(2024, 3, 10, 9, 15, tz="UTC")


def iso(value: pendulum.DateTime) -> str:
    """ISO-8601 with full microsecond precision."""
    return value.isoformat()


@pytest.fixture(autouse=True)
def setup_operations():
    """Register the built-in operation table before each test."""
    OperationRegistry.clear()
    register_all_operations()
    yield
    OperationRegistry.clear()


@pytest.fixture
def provider():
    """A UTC provider whose clock is frozen at BASE."""
    return DateProvider("UTC", clock=lambda: BASE)
