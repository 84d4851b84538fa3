"""Security dependencies for FastAPI routes.

Admin token authentication (constant-time compare).
"""

import hmac
import os

import structlog
from fastapi import HTTPException, Request, status

from enrollq.config import get_settings

logger = structlog.get_logger(__name__)


def _configured_admin_token():
    return get_settings().admin_token or os.environ.get("ADMIN_TOKEN")


def require_admin_token(request: Request) -> bool:
    """
    Require valid admin token for protected routes.

    - Uses hmac.compare_digest() for constant-time comparison
    - Returns 401 for missing token, 403 for invalid or unconfigured token

    Usage:
        @router.post("/admin/jobs")
        async def enqueue(..., _: bool = Depends(require_admin_token)):
            ...
    """
    admin_token = _configured_admin_token()

    if not admin_token:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="ADMIN_TOKEN not configured. Contact system administrator.",
        )

    provided_token = request.headers.get("X-Admin-Token")
    if not provided_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin token required. Provide X-Admin-Token header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not hmac.compare_digest(provided_token.encode(), admin_token.encode()):
        logger.warning(
            "Invalid admin token attempt",
            path=request.url.path,
            client=request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin token",
        )

    return True
