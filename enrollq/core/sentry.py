"""Sentry initialization and terminal-failure reporting."""

import os
from typing import Optional

import sentry_sdk
import structlog
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from enrollq import __version__
from enrollq.config import Settings
from enrollq.core.errors import TerminalJobFailure

logger = structlog.get_logger(__name__)

_enabled = False


def _before_send(event: dict, hint: dict) -> Optional[dict]:
    """Drop 4xx client errors; only server-side failures are tracked."""
    if "exc_info" in hint:
        exc_type, exc_value, tb = hint["exc_info"]
        if hasattr(exc_value, "status_code"):
            status_code = exc_value.status_code
            if 400 <= status_code < 500:
                return None
    return event


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry if DSN is configured.

    Returns True if Sentry was initialized, False otherwise.
    """
    global _enabled

    if not settings.sentry_dsn:
        return False

    # Only send ERROR-level logs as Sentry events
    sentry_logging = LoggingIntegration(
        level=None,
        event_level="ERROR",
    )

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        release=os.environ.get("GIT_SHA", f"enrollq@{__version__}"),
        integrations=[
            sentry_logging,
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=False,
        attach_stacktrace=True,
        before_send=_before_send,
    )
    sentry_sdk.set_tag("service", "enrollq")
    _enabled = True

    logger.info(
        "Sentry initialized",
        environment=settings.sentry_environment,
    )
    return True


def report_terminal_failure(failure: TerminalJobFailure) -> None:
    """Send an exhausted job to Sentry. No-op when Sentry is not configured."""
    if not _enabled:
        return
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("job_type", failure.job_type)
        scope.set_extra("job_id", str(failure.job_id))
        scope.set_extra("attempts", failure.attempts)
        sentry_sdk.capture_exception(failure)
