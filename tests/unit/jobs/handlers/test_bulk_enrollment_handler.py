"""Tests for the process_bulk_enrollment handler."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from enrollq.core.errors import HandlerError, PersistenceError
from enrollq.jobs.handlers.bulk_enrollment import handle_process_bulk_enrollment
from enrollq.jobs.models import Job
from enrollq.jobs.types import JobStatus, JobType, NotificationType
from enrollq.services.notifications.dispatcher import build_dedupe_key


def make_job(payload):
    return Job(
        id=uuid4(),
        type=JobType.PROCESS_BULK_ENROLLMENT,
        status=JobStatus.PROCESSING,
        payload=payload,
    )


@pytest.fixture
def waitlist_repo():
    repo = MagicMock()
    repo.remove_students = AsyncMock(return_value=0)
    return repo


def run_with(enrollments, waitlist_repo):
    return patch(
        "enrollq.jobs.handlers.bulk_enrollment.EnrollmentsRepository",
        return_value=enrollments,
    ), patch(
        "enrollq.jobs.handlers.bulk_enrollment.WaitlistRepository",
        return_value=waitlist_repo,
    )


class TestHandleProcessBulkEnrollment:
    @pytest.mark.asyncio
    async def test_enrolls_and_confirms(self, mock_context, job_store, waitlist_repo):
        class_id = uuid4()
        new_student, existing_student = uuid4(), uuid4()
        enrollments = MagicMock()
        enrollments.enroll = AsyncMock(
            side_effect=lambda c, s, by: s == new_student
        )

        p1, p2 = run_with(enrollments, waitlist_repo)
        with p1, p2:
            result = await handle_process_bulk_enrollment(
                make_job(
                    {
                        "class_id": str(class_id),
                        "student_ids": [str(new_student), str(existing_student)],
                    }
                ),
                mock_context,
            )

        assert result == {"enrolled": 1, "already_enrolled": 1, "failed": 0}

        confirmations = [
            j for j in job_store.jobs.values() if j.type == JobType.SEND_NOTIFICATION
        ]
        assert len(confirmations) == 1
        assert confirmations[0].payload["student_id"] == str(new_student)
        assert confirmations[0].payload["type"] == "enrollment_confirmed"

        waitlist_repo.remove_students.assert_awaited_once_with(
            class_id, [new_student, existing_student]
        )
        stats_jobs = [
            j for j in job_store.jobs.values()
            if j.type == JobType.UPDATE_ENROLLMENT_STATS
        ]
        assert stats_jobs[0].payload == {"class_ids": [str(class_id)]}

    @pytest.mark.asyncio
    async def test_re_enrollment_gets_a_fresh_confirmation_key(
        self, mock_context, job_store, waitlist_repo
    ):
        class_id, student_id = uuid4(), uuid4()
        enrollments = MagicMock()
        enrollments.enroll = AsyncMock(return_value=True)
        payload = {"class_id": str(class_id), "student_ids": [str(student_id)]}
        first, second = make_job(payload), make_job(payload)

        p1, p2 = run_with(enrollments, waitlist_repo)
        with p1, p2:
            await handle_process_bulk_enrollment(first, mock_context)
            await handle_process_bulk_enrollment(second, mock_context)

        keys = [
            build_dedupe_key(student_id, NotificationType.ENROLLMENT_CONFIRMED.value, j.payload)
            for j in job_store.jobs.values()
            if j.type == JobType.SEND_NOTIFICATION
        ]
        assert len(keys) == 2
        assert keys[0] != keys[1]
        assert keys[0].endswith(str(first.id))

    @pytest.mark.asyncio
    async def test_partial_failure_continues(self, mock_context, job_store, waitlist_repo):
        class_id = uuid4()
        ok, broken = uuid4(), uuid4()

        async def enroll(c, s, by):
            if s == broken:
                raise PersistenceError("enrollments.enroll", "deadlock detected")
            return True

        enrollments = MagicMock()
        enrollments.enroll = AsyncMock(side_effect=enroll)

        p1, p2 = run_with(enrollments, waitlist_repo)
        with p1, p2:
            result = await handle_process_bulk_enrollment(
                make_job(
                    {"class_id": str(class_id), "student_ids": [str(ok), str(broken)]}
                ),
                mock_context,
            )

        assert result == {"enrolled": 1, "already_enrolled": 0, "failed": 1}
        waitlist_repo.remove_students.assert_awaited_once_with(class_id, [ok])

    @pytest.mark.asyncio
    async def test_total_failure_raises(self, mock_context, job_store, waitlist_repo):
        enrollments = MagicMock()
        enrollments.enroll = AsyncMock(
            side_effect=PersistenceError("enrollments.enroll", "connection reset")
        )

        p1, p2 = run_with(enrollments, waitlist_repo)
        with p1, p2:
            with pytest.raises(HandlerError):
                await handle_process_bulk_enrollment(
                    make_job({"class_id": str(uuid4()), "student_ids": [str(uuid4())]}),
                    mock_context,
                )

        waitlist_repo.remove_students.assert_not_called()
        assert job_store.jobs == {}

    @pytest.mark.asyncio
    async def test_missing_class_id(self, mock_context):
        with pytest.raises(HandlerError):
            await handle_process_bulk_enrollment(
                make_job({"student_ids": []}), mock_context
            )
