"""
Background Task Helpers

Provides helper functions for background work that creates its own database
sessions. Background tasks cannot use the endpoint's session as it's closed
after the endpoint returns.

- flag_ip_background: records a suspicious IP after a failed verification
- purge_expired_records: one TTL sweep over challenges, sessions and IP flags
- run_purge_loop: repeats the sweep until cancelled on shutdown
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from linkgate.db.interface import DatabaseAdapter
from linkgate.services.challenge_store import ChallengeStore
from linkgate.services.issuance_limiter import IssuanceLimiter
from linkgate.services.records import RecordService

logger = logging.getLogger(__name__)


async def flag_ip_background(
    session_maker: async_sessionmaker,
    ip_address: str,
    reason: str
) -> None:
    """
    Background task to flag an IP as suspicious.

    Args:
        session_maker: Factory for a fresh database session
        ip_address: The IP that failed verification
        reason: Why it was flagged
    """
    try:
        async with session_maker() as session:
            await RecordService(session).flag_ip(ip_address, reason)
    except Exception as e:
        logger.error(
            f"Failed to flag suspicious IP {ip_address}: {str(e)}",
            exc_info=True
        )


async def purge_expired_records(
    session_maker: async_sessionmaker,
    adapter: DatabaseAdapter,
    limiter: IssuanceLimiter
) -> int:
    """Delete expired challenges, sessions and IP flags; returns rows removed."""
    async with session_maker() as session:
        removed = await ChallengeStore(session, limiter).purge_expired()
        removed += await RecordService(session).purge_expired(adapter)
    return removed


async def run_purge_loop(
    session_maker: async_sessionmaker,
    adapter: DatabaseAdapter,
    limiter: IssuanceLimiter,
    interval_seconds: float
) -> None:
    """Sweep expired records every ``interval_seconds`` until cancelled."""
    while True:
        try:
            removed = await purge_expired_records(session_maker, adapter, limiter)
            if removed:
                logger.info(f"Purged {removed} expired records")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Expired record purge failed: {str(e)}", exc_info=True)
        await asyncio.sleep(interval_seconds)
