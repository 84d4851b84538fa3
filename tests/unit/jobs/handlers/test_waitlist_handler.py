"""Tests for the process_waitlist handler."""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from enrollq.core.errors import HandlerError
from enrollq.jobs.handlers.waitlist import handle_process_waitlist
from enrollq.jobs.models import Job
from enrollq.jobs.types import JobStatus, JobType


def make_job(payload):
    return Job(
        id=uuid4(),
        type=JobType.PROCESS_WAITLIST,
        status=JobStatus.PROCESSING,
        payload=payload,
    )


class TestHandleProcessWaitlist:
    @pytest.mark.asyncio
    async def test_promotes_class(self, mock_context):
        class_id = uuid4()
        engine = AsyncMock()
        engine.promote = AsyncMock(
            return_value={"available_spots": 2, "outstanding_offers": 0, "offers_issued": 2}
        )

        with patch(
            "enrollq.jobs.handlers.waitlist.WaitlistPromotionEngine",
            return_value=engine,
        ) as engine_cls:
            result = await handle_process_waitlist(
                make_job({"class_id": str(class_id)}), mock_context
            )

        engine.promote.assert_awaited_once_with(class_id)
        assert engine_cls.call_args.kwargs["job_repo"] is mock_context["job_repo"]
        assert result["class_id"] == str(class_id)
        assert result["offers_issued"] == 2

    @pytest.mark.asyncio
    async def test_accepts_camel_case_class_id(self, mock_context):
        class_id = uuid4()
        engine = AsyncMock()
        engine.promote = AsyncMock(return_value={})

        with patch(
            "enrollq.jobs.handlers.waitlist.WaitlistPromotionEngine",
            return_value=engine,
        ):
            await handle_process_waitlist(make_job({"classId": str(class_id)}), mock_context)

        engine.promote.assert_awaited_once_with(class_id)

    @pytest.mark.asyncio
    async def test_missing_class_id_fails(self, mock_context):
        with pytest.raises(HandlerError):
            await handle_process_waitlist(make_job({}), mock_context)
