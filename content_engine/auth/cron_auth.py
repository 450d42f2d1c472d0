"""
Bearer-token guard for the external sweep trigger.

CRON_SECRET set: the request must carry ``Authorization: Bearer <secret>``.
CRON_SECRET unset: allowed outside production, rejected in production.
"""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core import EngineSettings, get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def verify_cron_secret(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    settings: EngineSettings = request.app.state.settings

    if not settings.cron_secret:
        if settings.is_production:
            logger.warning("Sweep trigger rejected: CRON_SECRET is not configured")
            raise HTTPException(
                status_code=401,
                detail="Unauthorized",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return

    token = credentials.credentials if credentials else ""
    if not token or not secrets.compare_digest(token.encode(), settings.cron_secret.encode()):
        logger.warning(
            "Sweep trigger rejected: invalid bearer token",
            client=request.client.host if request.client else None,
        )
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
