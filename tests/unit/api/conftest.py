"""Shared fixtures for API route tests."""

import pytest
from fastapi.testclient import TestClient

from packsql.api.main import app, app_state
from packsql.slicing.cache import InMemoryPackCache


@pytest.fixture
def client():
    """Test client without lifespan startup (no database or LLM)."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def clean_app_state():
    """Give each test an empty cache and restore the global state afterwards."""
    original_state = app_state.copy()
    app_state.update(
        {"cache": InMemoryPackCache(), "schema": None, "connector": None, "runner": None}
    )
    yield app_state
    app_state.clear()
    app_state.update(original_state)
