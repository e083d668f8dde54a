"""Shared API dependencies for services, configuration and admin authorization."""

import logging
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from linkgate.core.exceptions import UnauthorizedError
from linkgate.core.security import decode_session_token
from linkgate.core.service_manager import get_issuance_limiter
from linkgate.core.setting import Settings, settings
from linkgate.db.session import async_session_maker, get_session
from linkgate.services.challenge_service import ChallengeService
from linkgate.services.challenge_store import ChallengeStore
from linkgate.services.issuance_limiter import IssuanceLimiter

logger = logging.getLogger(__name__)

# Missing credentials are answered by require_admin, not by HTTPBearer
bearer_scheme = HTTPBearer(auto_error=False)


def get_settings() -> Settings:
    return settings


def get_session_maker() -> async_sessionmaker:
    """Session factory for work that outlives the request (background tasks)."""
    return async_session_maker


def get_challenge_service(
    session: AsyncSession = Depends(get_session),
    limiter: IssuanceLimiter = Depends(get_issuance_limiter),
    config: Settings = Depends(get_settings),
) -> ChallengeService:
    return ChallengeService(ChallengeStore(session, limiter), config)


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    config: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Require a session token whose role claim is admin.

    Returns:
        The decoded token claims

    Raises:
        HTTPException 401: If the token is missing, invalid or not an admin's
    """
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized"
    )
    if credentials is None:
        raise unauthorized
    if not config.AUTH_SECRET:
        logger.warning("AUTH_SECRET not set; rejecting admin request")
        raise unauthorized

    try:
        claims = decode_session_token(
            credentials.credentials,
            config.AUTH_SECRET,
            config.JWT_ALGORITHM,
        )
    except UnauthorizedError:
        raise unauthorized

    if claims.get("role") != "admin":
        raise unauthorized
    return claims
