"""Tests for the bundled DDL."""

import re

from enrollq.core.database import SCHEMA
from enrollq.jobs.types import JobType


def test_job_type_column_accepts_exactly_the_known_types():
    match = re.search(r"type TEXT NOT NULL CHECK \(type IN \((.*?)\)\)", SCHEMA, re.S)
    assert match is not None
    allowed = set(re.findall(r"'([a-z_]+)'", match.group(1)))
    assert allowed == {t.value for t in JobType}
