"""Tests for admin utility helpers."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi import HTTPException

from enrollq.admin.utils import (
    json_serializable,
    persistence_unavailable,
    require_db_pool,
)
from enrollq.core.errors import PersistenceError
from enrollq.jobs.types import JobStatus


class TestJsonSerializable:
    def test_nested_values(self):
        job_id = uuid4()
        value = {
            "id": job_id,
            "at": datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
            "day": date(2026, 3, 1),
            "ratio": Decimal("0.5"),
            "status": JobStatus.FAILED,
            "tags": ("a", 1, None),
        }

        assert json_serializable(value) == {
            "id": str(job_id),
            "at": "2026-03-01T12:00:00+00:00",
            "day": "2026-03-01",
            "ratio": 0.5,
            "status": "failed",
            "tags": ["a", 1, None],
        }


class TestRequireDbPool:
    def test_missing_pool(self):
        with pytest.raises(HTTPException) as exc_info:
            require_db_pool(None, "Database")
        assert exc_info.value.status_code == 503

    def test_returns_pool(self):
        pool = object()
        assert require_db_pool(pool) is pool


class TestPersistenceUnavailable:
    def test_maps_to_503(self):
        with pytest.raises(HTTPException) as exc_info:
            with persistence_unavailable():
                raise PersistenceError("jobs.list", "timeout")
        assert exc_info.value.status_code == 503
        assert "jobs.list" in exc_info.value.detail

    def test_other_errors_propagate(self):
        with pytest.raises(ValueError):
            with persistence_unavailable():
                raise ValueError("bad")
