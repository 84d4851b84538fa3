"""Tests for the send_deadline_reminders handler."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from enrollq.jobs.handlers.deadline_reminders import (
    end_of_tomorrow,
    handle_send_deadline_reminders,
)
from enrollq.jobs.models import Job
from enrollq.jobs.types import JobStatus, JobType


def make_job():
    return Job(
        id=uuid4(),
        type=JobType.SEND_DEADLINE_REMINDERS,
        status=JobStatus.PROCESSING,
        payload={},
    )


class TestEndOfTomorrow:
    def test_last_instant_of_next_day(self):
        now = datetime(2026, 3, 1, 9, 15, tzinfo=timezone.utc)
        assert end_of_tomorrow(now) == datetime(
            2026, 3, 2, 23, 59, 59, 999999, tzinfo=timezone.utc
        )


class TestHandleSendDeadlineReminders:
    @pytest.mark.asyncio
    async def test_no_closing_classes(self, mock_context, job_store):
        classes = MagicMock()
        classes.list_closing_between = AsyncMock(return_value=[])

        with patch(
            "enrollq.jobs.handlers.deadline_reminders.ClassesRepository",
            return_value=classes,
        ):
            result = await handle_send_deadline_reminders(make_job(), mock_context)

        assert result == {"classes": 0, "reminders_enqueued": 0}
        assert job_store.jobs == {}

    @pytest.mark.asyncio
    async def test_reminds_interested_students(self, mock_context, job_store):
        class_id = uuid4()
        students = [uuid4(), uuid4()]
        deadline = datetime.now(timezone.utc) + timedelta(hours=20)
        classes = MagicMock()
        classes.list_closing_between = AsyncMock(
            return_value=[
                {
                    "id": class_id,
                    "name": "Linear Algebra",
                    "code": "MATH-201",
                    "enrollment_end": deadline,
                }
            ]
        )
        enrollments = MagicMock()
        enrollments.list_reminder_recipients = AsyncMock(return_value=students)

        with patch(
            "enrollq.jobs.handlers.deadline_reminders.ClassesRepository",
            return_value=classes,
        ), patch(
            "enrollq.jobs.handlers.deadline_reminders.EnrollmentsRepository",
            return_value=enrollments,
        ):
            result = await handle_send_deadline_reminders(make_job(), mock_context)

        assert result == {"classes": 1, "reminders_enqueued": 2}
        jobs = list(job_store.jobs.values())
        assert {j.payload["student_id"] for j in jobs} == {str(s) for s in students}
        payload = jobs[0].payload
        assert payload["type"] == "enrollment_deadline_reminder"
        assert payload["message"] == "Enrollment for Linear Algebra (MATH-201) ends tomorrow!"
        assert payload["dedupe_key"].endswith(deadline.date().isoformat())

        viewed_since = enrollments.list_reminder_recipients.call_args[0][1]
        assert datetime.now(timezone.utc) - viewed_since >= timedelta(days=7)
