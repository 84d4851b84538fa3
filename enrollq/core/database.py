"""Database pool bootstrap and schema."""

import json
from typing import Optional

import asyncpg
import structlog

from enrollq.config import Settings

logger = structlog.get_logger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS background_jobs (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    type TEXT NOT NULL CHECK (type IN (
        'process_waitlist', 'send_notification', 'cleanup_expired_requests',
        'update_enrollment_stats', 'send_deadline_reminders', 'process_bulk_enrollment'
    )),
    payload JSONB NOT NULL DEFAULT '{}',
    priority INTEGER NOT NULL DEFAULT 0,
    scheduled_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    attempts INTEGER NOT NULL DEFAULT 0 CHECK (attempts >= 0),
    max_attempts INTEGER NOT NULL DEFAULT 3 CHECK (max_attempts >= 1),
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
    error TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CHECK (attempts <= max_attempts)
);

CREATE INDEX IF NOT EXISTS idx_background_jobs_status_scheduled
    ON background_jobs(status, scheduled_at);
CREATE INDEX IF NOT EXISTS idx_background_jobs_priority
    ON background_jobs(priority DESC, scheduled_at);
CREATE INDEX IF NOT EXISTS idx_background_jobs_type ON background_jobs(type);

CREATE TABLE IF NOT EXISTS job_events (
    id BIGSERIAL PRIMARY KEY,
    job_id UUID NOT NULL REFERENCES background_jobs(id) ON DELETE CASCADE,
    ts TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    level TEXT NOT NULL CHECK (level IN ('info', 'warn', 'error')),
    message TEXT NOT NULL,
    meta JSONB
);

CREATE INDEX IF NOT EXISTS idx_job_events_job ON job_events(job_id, ts DESC);

CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email TEXT NOT NULL,
    first_name TEXT,
    notification_preferences JSONB NOT NULL
        DEFAULT '{"email": true, "push": true, "sms": false}'
);

CREATE TABLE IF NOT EXISTS classes (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name TEXT NOT NULL,
    code TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    capacity INTEGER NOT NULL DEFAULT 0,
    current_enrollment INTEGER NOT NULL DEFAULT 0,
    enrollment_end TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS enrollments (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    student_id UUID NOT NULL REFERENCES users(id),
    class_id UUID NOT NULL REFERENCES classes(id),
    status TEXT NOT NULL DEFAULT 'enrolled',
    enrolled_by UUID,
    enrolled_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (student_id, class_id)
);

CREATE TABLE IF NOT EXISTS enrollment_requests (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    student_id UUID NOT NULL REFERENCES users(id),
    class_id UUID NOT NULL REFERENCES classes(id),
    status TEXT NOT NULL DEFAULT 'pending',
    requested_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    expires_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS waitlist_entries (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    class_id UUID NOT NULL REFERENCES classes(id),
    student_id UUID NOT NULL REFERENCES users(id),
    priority INTEGER NOT NULL DEFAULT 0,
    added_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    notified_at TIMESTAMPTZ,
    expires_at TIMESTAMPTZ,
    UNIQUE (class_id, student_id),
    CHECK ((notified_at IS NULL) = (expires_at IS NULL))
);

CREATE INDEX IF NOT EXISTS idx_waitlist_entries_rank
    ON waitlist_entries(class_id, priority DESC, added_at ASC);
CREATE INDEX IF NOT EXISTS idx_waitlist_entries_expires
    ON waitlist_entries(expires_at) WHERE expires_at IS NOT NULL;

CREATE TABLE IF NOT EXISTS class_views (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    student_id UUID NOT NULL REFERENCES users(id),
    class_id UUID NOT NULL REFERENCES classes(id),
    viewed_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS notifications (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id),
    type TEXT NOT NULL,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    data JSONB NOT NULL DEFAULT '{}',
    dedupe_key TEXT UNIQUE,
    read_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS enrollment_statistics (
    class_id UUID PRIMARY KEY REFERENCES classes(id),
    total_enrolled INTEGER NOT NULL DEFAULT 0,
    total_pending INTEGER NOT NULL DEFAULT 0,
    total_waitlisted INTEGER NOT NULL DEFAULT 0,
    available_spots INTEGER NOT NULL DEFAULT 0,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode JSONB columns to Python objects on every pooled connection."""
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


async def create_pool(settings: Settings) -> Optional[asyncpg.Pool]:
    """Create the asyncpg pool. Returns None when the database is unreachable."""
    try:
        logger.info(
            "Attempting database connection",
            url_prefix=settings.database_url[:30] + "...",
        )
        pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            ssl="require" if settings.db_ssl else None,
            timeout=10,
            command_timeout=30,
            init=_init_connection,
        )
        logger.info(
            "Database pool initialized",
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        return pool
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.error("Failed to initialize database pool", error=str(e))
        return None


async def apply_schema(pool: asyncpg.Pool) -> None:
    """Create tables and indexes if they do not exist."""
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA)
    logger.info("Database schema applied")
