"""Fixtures for handler tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def mock_context(job_store, settings):
    """Execution context as built by the processor."""
    return {
        "worker_id": "test-worker",
        "pool": MagicMock(),
        "job_repo": job_store,
        "events_repo": AsyncMock(),
        "notifier": AsyncMock(),
        "settings": settings,
    }
