"""
Pytest Configuration for Fleet Analytics Tests

Environment overrides must be set before settings.py is imported.
"""

import os

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.pop("ANALYTICS_OVERRIDES_FILE", None)
os.environ.pop("USAGE_THRESHOLD_PRESET", None)
os.environ.pop("FORECAST_WINDOW_MONTHS", None)

import pytest

# Import all fixtures
from tests.fixtures.fleet_fixtures import *  # noqa


@pytest.fixture
def test_client():
    """Provide a test client for API tests."""
    from fastapi.testclient import TestClient

    from main import app

    return TestClient(app)
