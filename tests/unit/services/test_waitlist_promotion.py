"""Tests for waitlist promotion."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from enrollq.core.errors import HandlerError
from enrollq.jobs.models import ClassCapacity, WaitlistEntry
from enrollq.jobs.types import JobType
from enrollq.services.waitlist import WaitlistPromotionEngine, rank_candidates

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(minutes=5)
NOW = datetime(2026, 3, 5, 12, 0, tzinfo=timezone.utc)


def entry(class_id, priority, added_at, notified_at=None):
    return WaitlistEntry(
        id=uuid4(),
        class_id=class_id,
        student_id=uuid4(),
        priority=priority,
        added_at=added_at,
        notified_at=notified_at,
        expires_at=notified_at + timedelta(hours=24) if notified_at else None,
    )


class TestRankCandidates:
    def test_priority_then_fifo(self):
        class_id = uuid4()
        a = entry(class_id, 5, T0)
        b = entry(class_id, 9, T1)
        c = entry(class_id, 5, T1)

        assert rank_candidates([a, b, c], 2) == [b, a]

    def test_skips_outstanding_offers(self):
        class_id = uuid4()
        offered = entry(class_id, 9, T0, notified_at=NOW)
        waiting = entry(class_id, 1, T1)

        assert rank_candidates([offered, waiting], 5) == [waiting]

    def test_non_positive_limit(self):
        assert rank_candidates([entry(uuid4(), 1, T0)], 0) == []


@pytest.fixture
def class_id():
    return uuid4()


@pytest.fixture
def job_repo():
    repo = MagicMock()
    repo.enqueue = AsyncMock(side_effect=lambda *a, **kw: uuid4())
    return repo


@pytest.fixture
def engine(job_repo, settings):
    engine = WaitlistPromotionEngine(MagicMock(), job_repo=job_repo, settings=settings)
    engine._classes = MagicMock()
    engine._waitlist = MagicMock()
    engine._waitlist.count_outstanding_offers = AsyncMock(return_value=0)
    engine._waitlist.stamp_offer = AsyncMock(return_value=True)
    return engine


def set_capacity(engine, class_id, capacity, enrolled):
    engine._classes.get_class_capacity = AsyncMock(
        return_value=ClassCapacity(
            class_id=class_id, capacity=capacity, current_enrollment=enrolled
        )
    )


class TestPromote:
    @pytest.mark.asyncio
    async def test_missing_class(self, engine, class_id):
        engine._classes.get_class_capacity = AsyncMock(return_value=None)
        with pytest.raises(HandlerError):
            await engine.promote(class_id, now=NOW)

    @pytest.mark.asyncio
    async def test_full_class_is_noop(self, engine, class_id, job_repo):
        set_capacity(engine, class_id, 30, 30)
        engine._waitlist.list_unoffered = AsyncMock()

        result = await engine.promote(class_id, now=NOW)

        assert result["offers_issued"] == 0
        engine._waitlist.list_unoffered.assert_not_called()
        job_repo.enqueue.assert_not_called()

    @pytest.mark.asyncio
    async def test_offers_top_ranked_candidates(self, engine, class_id, job_repo):
        a = entry(class_id, 5, T0)
        b = entry(class_id, 9, T1)
        c = entry(class_id, 5, T1)
        set_capacity(engine, class_id, 30, 28)
        engine._waitlist.list_unoffered = AsyncMock(return_value=[a, b, c])

        result = await engine.promote(class_id, now=NOW)

        assert result == {"available_spots": 2, "outstanding_offers": 0, "offers_issued": 2}
        notified = [call.args[1]["student_id"] for call in job_repo.enqueue.call_args_list]
        assert notified == [str(b.student_id), str(a.student_id)]
        stamped = [call.args[0] for call in engine._waitlist.stamp_offer.call_args_list]
        assert stamped == [b.id, a.id]

    @pytest.mark.asyncio
    async def test_notification_payload(self, engine, class_id, job_repo):
        candidate = entry(class_id, 0, T0)
        set_capacity(engine, class_id, 10, 9)
        engine._waitlist.list_unoffered = AsyncMock(return_value=[candidate])

        await engine.promote(class_id, now=NOW)

        job_type, payload = job_repo.enqueue.call_args.args
        assert job_type == JobType.SEND_NOTIFICATION
        assert payload == {
            "type": "waitlist_enrollment_available",
            "student_id": str(candidate.student_id),
            "class_id": str(class_id),
            "response_deadline": (NOW + timedelta(hours=24)).isoformat(),
        }
        engine._waitlist.stamp_offer.assert_awaited_once_with(
            candidate.id, NOW, NOW + timedelta(hours=24)
        )

    @pytest.mark.asyncio
    async def test_outstanding_offers_reduce_new_offers(self, engine, class_id, job_repo):
        set_capacity(engine, class_id, 30, 28)
        engine._waitlist.count_outstanding_offers = AsyncMock(return_value=1)
        engine._waitlist.list_unoffered = AsyncMock(
            return_value=[entry(class_id, 0, T0), entry(class_id, 0, T1)]
        )

        result = await engine.promote(class_id, now=NOW)

        assert engine._waitlist.list_unoffered.call_args.kwargs["limit"] == 1
        assert result["offers_issued"] == 1
        assert job_repo.enqueue.await_count == 1

    @pytest.mark.asyncio
    async def test_all_spots_already_offered(self, engine, class_id, job_repo):
        set_capacity(engine, class_id, 30, 28)
        engine._waitlist.count_outstanding_offers = AsyncMock(return_value=2)
        engine._waitlist.list_unoffered = AsyncMock()

        result = await engine.promote(class_id, now=NOW)

        assert result["offers_issued"] == 0
        engine._waitlist.list_unoffered.assert_not_called()

    @pytest.mark.asyncio
    async def test_never_more_offers_than_spots(self, engine, class_id, job_repo):
        set_capacity(engine, class_id, 30, 29)
        engine._waitlist.list_unoffered = AsyncMock(
            return_value=[entry(class_id, 0, T0 + timedelta(minutes=i)) for i in range(5)]
        )

        result = await engine.promote(class_id, now=NOW)

        assert result["offers_issued"] == 1
        assert job_repo.enqueue.await_count == 1

    @pytest.mark.asyncio
    async def test_notification_enqueued_before_offer_stamped(self, engine, class_id, job_repo):
        calls = []
        job_repo.enqueue = AsyncMock(side_effect=lambda *a, **kw: calls.append("enqueue"))
        engine._waitlist.stamp_offer = AsyncMock(
            side_effect=lambda *a: calls.append("stamp") or True
        )
        set_capacity(engine, class_id, 10, 9)
        engine._waitlist.list_unoffered = AsyncMock(return_value=[entry(class_id, 0, T0)])

        await engine.promote(class_id, now=NOW)

        assert calls == ["enqueue", "stamp"]

    @pytest.mark.asyncio
    async def test_stamp_race_is_not_counted(self, engine, class_id):
        set_capacity(engine, class_id, 10, 9)
        engine._waitlist.list_unoffered = AsyncMock(return_value=[entry(class_id, 0, T0)])
        engine._waitlist.stamp_offer = AsyncMock(return_value=False)

        result = await engine.promote(class_id, now=NOW)
        assert result["offers_issued"] == 0
