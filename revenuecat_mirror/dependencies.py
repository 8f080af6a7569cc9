"""
Common Dependencies
===================

Shared dependencies used across the application.
"""

import hmac
import logging
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from revenuecat_mirror.config import settings
from revenuecat_mirror.core.errors import AuthenticationError, ErrorCodes
from revenuecat_mirror.db.session import get_db

logger = logging.getLogger(__name__)

# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]

# Security scheme for the read API token
security = HTTPBearer(auto_error=False)


def tokens_match(provided: Optional[str], expected: str) -> bool:
    """Constant-time comparison of a presented secret."""
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_api_token(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> None:
    """
    Guard for read endpoints.

    When ``API_ACCESS_TOKEN`` is empty the read API is open (local runs);
    otherwise a matching ``Authorization: Bearer <token>`` header is required.
    """
    expected = settings.API_ACCESS_TOKEN
    if not expected:
        return

    if credentials is None:
        raise AuthenticationError(
            code=ErrorCodes.AUTH_INVALID_TOKEN,
            message="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not tokens_match(credentials.credentials, expected):
        raise AuthenticationError(
            code=ErrorCodes.AUTH_INVALID_TOKEN,
            message="Invalid API token",
            headers={"WWW-Authenticate": "Bearer"},
        )


ApiToken = Depends(require_api_token)
