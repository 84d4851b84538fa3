"""Waitlist promotion and membership operations.

Promotion turns open seats into time-boxed offers. Candidates are ranked by
priority (higher first), then by when they joined (earlier first). Offers
already outstanding count against the open seats, so cascading runs
(triggered by expiry, decline or leave) only refill what was released.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional
from uuid import UUID

import structlog

from enrollq.config import get_settings
from enrollq.core.errors import HandlerError
from enrollq.jobs.models import WaitlistEntry
from enrollq.jobs.types import JobType, NotificationType
from enrollq.repositories.classes import ClassesRepository
from enrollq.repositories.jobs import JobRepository
from enrollq.repositories.waitlist import DuplicateWaitlistEntry, WaitlistRepository

logger = structlog.get_logger(__name__)


def rank_candidates(entries: Iterable[WaitlistEntry], limit: int) -> list[WaitlistEntry]:
    """Entries eligible for an offer, best first, capped at ``limit``.

    Entries with an outstanding offer are skipped. Ties on priority are
    broken by ``added_at`` (FIFO); the sort is stable for identical keys.
    """
    if limit <= 0:
        return []
    eligible = [e for e in entries if not e.has_outstanding_offer]
    eligible.sort(key=lambda e: (-e.priority, e.added_at))
    return eligible[:limit]


class WaitlistPromotionEngine:
    """Issues waitlist offers for open capacity in a class."""

    def __init__(self, pool, job_repo: Optional[JobRepository] = None, settings=None):
        self._pool = pool
        self._settings = settings or get_settings()
        self._job_repo = job_repo or JobRepository(pool)
        self._classes = ClassesRepository(pool)
        self._waitlist = WaitlistRepository(pool)

    async def promote(self, class_id: UUID, now: Optional[datetime] = None) -> dict[str, Any]:
        """Offer open seats in ``class_id`` to the top-ranked waitlisted students.

        Returns:
            dict with available_spots, outstanding_offers, offers_issued

        Raises:
            HandlerError: If the class does not exist
        """
        now = now or datetime.now(timezone.utc)
        log = logger.bind(class_id=str(class_id))

        capacity = await self._classes.get_class_capacity(class_id)
        if capacity is None:
            raise HandlerError(f"Class {class_id} not found")

        available_spots = capacity.available_spots
        result: dict[str, Any] = {
            "available_spots": available_spots,
            "outstanding_offers": 0,
            "offers_issued": 0,
        }
        if available_spots <= 0:
            log.info("waitlist_no_capacity", available_spots=available_spots)
            return result

        outstanding = await self._waitlist.count_outstanding_offers(class_id)
        result["outstanding_offers"] = outstanding
        offerable = available_spots - outstanding
        if offerable <= 0:
            log.info(
                "waitlist_offers_pending",
                available_spots=available_spots,
                outstanding_offers=outstanding,
            )
            return result

        entries = await self._waitlist.list_unoffered(class_id, limit=offerable)
        candidates = rank_candidates(entries, offerable)
        if not candidates:
            log.info("waitlist_empty")
            return result

        ttl = timedelta(hours=self._settings.waitlist_offer_ttl_hours)
        expires_at = now + ttl

        for entry in candidates:
            await self._job_repo.enqueue(
                JobType.SEND_NOTIFICATION,
                {
                    "type": NotificationType.WAITLIST_ENROLLMENT_AVAILABLE.value,
                    "student_id": str(entry.student_id),
                    "class_id": str(entry.class_id),
                    "response_deadline": expires_at.isoformat(),
                },
            )
            stamped = await self._waitlist.stamp_offer(entry.id, now, expires_at)
            if not stamped:
                log.warning("waitlist_offer_stamp_skipped", entry_id=str(entry.id))
                continue
            result["offers_issued"] += 1

        log.info(
            "waitlist_offers_issued",
            available_spots=available_spots,
            offers_issued=result["offers_issued"],
            expires_at=expires_at.isoformat(),
        )
        return result


class WaitlistService:
    """Student-facing waitlist operations. Side effects go through the job queue."""

    def __init__(self, pool, job_repo: Optional[JobRepository] = None):
        self._pool = pool
        self._job_repo = job_repo or JobRepository(pool)
        self._waitlist = WaitlistRepository(pool)

    async def join(self, class_id: UUID, student_id: UUID, priority: int = 0) -> WaitlistEntry:
        """Add a student to a class waitlist.

        Raises:
            ValueError: If the student is already waitlisted
        """
        try:
            entry = await self._waitlist.add(class_id, student_id, priority)
        except DuplicateWaitlistEntry as e:
            raise ValueError(str(e)) from e
        logger.info(
            "waitlist_joined",
            class_id=str(class_id),
            student_id=str(student_id),
            priority=priority,
        )
        return entry

    async def leave(self, class_id: UUID, student_id: UUID) -> bool:
        """Remove a student. Releasing an outstanding offer re-runs promotion."""
        entry = await self._waitlist.get(class_id, student_id)
        if entry is None:
            return False
        removed = await self._waitlist.remove(class_id, student_id)
        if removed and entry.has_outstanding_offer:
            await self._job_repo.enqueue(
                JobType.PROCESS_WAITLIST, {"class_id": str(class_id)}
            )
        logger.info("waitlist_left", class_id=str(class_id), student_id=str(student_id))
        return removed

    async def respond(self, class_id: UUID, student_id: UUID, accept: bool) -> UUID:
        """Accept or decline an outstanding offer.

        Accepting queues the enrollment; declining frees the seat for the
        next candidate.

        Returns:
            Id of the job queued as a result

        Raises:
            ValueError: If the student has no outstanding offer
        """
        entry = await self._waitlist.get(class_id, student_id)
        if entry is None or not entry.has_outstanding_offer:
            raise ValueError(
                f"No outstanding waitlist offer for student {student_id} in class {class_id}"
            )

        if accept:
            job_id = await self._job_repo.enqueue(
                JobType.PROCESS_BULK_ENROLLMENT,
                {
                    "class_id": str(class_id),
                    "student_ids": [str(student_id)],
                    "enrolled_by": str(student_id),
                },
                priority=1,
            )
        else:
            await self._waitlist.remove(class_id, student_id)
            job_id = await self._job_repo.enqueue(
                JobType.PROCESS_WAITLIST, {"class_id": str(class_id)}
            )

        logger.info(
            "waitlist_offer_response",
            class_id=str(class_id),
            student_id=str(student_id),
            accepted=accept,
        )
        return job_id

    async def position(self, class_id: UUID, student_id: UUID) -> Optional[int]:
        """1-based rank of the student on the waitlist, None if not waitlisted."""
        entries = await self._waitlist.list_for_class(class_id)
        for index, entry in enumerate(entries, start=1):
            if entry.student_id == student_id:
                return index
        return None

    async def stats(self, class_id: UUID, now: Optional[datetime] = None) -> dict[str, Any]:
        """Waitlist size, outstanding offers and average wait in days."""
        now = now or datetime.now(timezone.utc)
        entries = await self._waitlist.list_for_class(class_id)
        total = len(entries)
        average_wait_days = 0.0
        if total:
            waited = sum((now - e.added_at).total_seconds() for e in entries)
            average_wait_days = waited / total / 86400
        return {
            "total_waitlisted": total,
            "outstanding_offers": sum(1 for e in entries if e.has_outstanding_offer),
            "average_wait_days": round(average_wait_days, 2),
        }
