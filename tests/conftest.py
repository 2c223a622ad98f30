"""Shared fixtures for the usage_costing test suite."""

import pytest

from usage_costing.models import Reading


@pytest.fixture
def half_hourly_readings():
    """Two days of readings, out of order, with one duplicated interval."""
    return [
        Reading("2024-01-02T00:00", 2.0),
        Reading("2024-01-01T00:30", 1.0),
        Reading("2024-01-01T00:00", 0.75),
        Reading("2024-01-01T00:00", 0.25),
    ]
