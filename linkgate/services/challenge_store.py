"""
Challenge Store

Holds outstanding challenges until they expire or are consumed, and fronts
the per-identity issuance counters.

Design Decisions:
- Counters live in the process-wide IssuanceLimiter, challenges in the
  database (one row per challenge, unique challenge_id)
- Reads never return an expired challenge, even before the periodic purge
  has removed it
- Consumption is a DELETE: a challenge can be redeemed at most once
"""

import logging
import time
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linkgate.core.exceptions import DatabaseError
from linkgate.db.models import Challenge
from linkgate.services.issuance_limiter import IssuanceLimiter

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class ChallengeStore:
    """
    Storage for outstanding challenges plus issuance accounting.

    Created per request with that request's database session; the
    limiter is shared.
    """

    def __init__(self, session: AsyncSession, limiter: IssuanceLimiter):
        self.session = session
        self.limiter = limiter

    async def record_issuance(self, identity: str) -> bool:
        """Count an issuance for ``identity``; False once the cap is reached."""
        return await self.limiter.record_issuance(identity)

    async def put(self, challenge: Challenge) -> Challenge:
        """
        Persist ``challenge`` until its expiry.

        Raises:
            DatabaseError: If the challenge_id already exists or the write fails
        """
        self.session.add(challenge)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DatabaseError(f"Duplicate challenge id {challenge.challenge_id}", e)
        await self.session.refresh(challenge)
        return challenge

    async def get(self, challenge_id: str, include_expired: bool = False) -> Optional[Challenge]:
        """Look up an outstanding challenge by id."""
        statement = select(Challenge).where(Challenge.challenge_id == challenge_id)
        if not include_expired:
            statement = statement.where(Challenge.expires_at > now_ms())
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()

    async def discard(self, challenge_id: str) -> bool:
        """Remove a challenge; returns True if a row was deleted."""
        statement = delete(Challenge).where(Challenge.challenge_id == challenge_id)
        result = await self.session.execute(statement)
        await self.session.commit()
        return bool(result.rowcount)

    async def purge_expired(self) -> int:
        """Delete every challenge past its expiry."""
        statement = delete(Challenge).where(Challenge.expires_at <= now_ms())
        result = await self.session.execute(statement)
        await self.session.commit()
        deleted = result.rowcount or 0
        if deleted:
            logger.debug(f"Purged {deleted} expired challenges")
        return deleted
