"""Admin API package."""

from enrollq.admin.jobs import router, set_db_pool

__all__ = ["router", "set_db_pool"]
