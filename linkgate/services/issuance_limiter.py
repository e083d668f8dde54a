"""
Challenge Issuance Limiter

Per-identity moving-window counter capping how many challenges an identity
may obtain (10 per minute by default).

Design Decisions:
- Built on the async API of the `limits` library that slowapi uses for the
  route-level limits, so one storage URI switches both to a shared backend
  and a Redis round-trip is awaited instead of blocking the event loop
- Moving window: every issuance is timestamped and counts until it is
  older than the window, so there is no burst at fixed-window boundaries
- The check and the increment are one storage operation (lock-protected
  in memory, a server-side script in Redis)
- Any storage failure denies issuance (fail closed)
"""

import logging

from limits import RateLimitItem, parse
from limits.aio.storage import Storage
from limits.aio.strategies import MovingWindowRateLimiter
from limits.storage import storage_from_string

logger = logging.getLogger(__name__)

NAMESPACE = "challenge-issuance"
ASYNC_SCHEME_PREFIX = "async+"


def to_async_storage_uri(storage_uri: str) -> str:
    """Map a limits storage URI (memory://, redis://...) to its asyncio variant."""
    if storage_uri.startswith(ASYNC_SCHEME_PREFIX):
        return storage_uri
    return f"{ASYNC_SCHEME_PREFIX}{storage_uri}"


class IssuanceLimiter:
    """
    Moving-window issuance counter keyed by client identity.

    Instances are shared across requests; one is created per process on
    startup.
    """

    def __init__(self, limit: str = "10/minute", storage_uri: str = "memory://"):
        """
        Args:
            limit: Rate limit string understood by limits.parse
            storage_uri: limits storage URI; the sync form used by slowapi
                (memory://, redis://host:port) is accepted and mapped to the
                asyncio storage
        """
        self.limit_string = limit
        self.item: RateLimitItem = parse(limit)
        self.storage: Storage = storage_from_string(to_async_storage_uri(storage_uri))
        self._strategy = MovingWindowRateLimiter(self.storage)

    @property
    def max_issuances(self) -> int:
        return self.item.amount

    @property
    def window_seconds(self) -> int:
        return self.item.get_expiry()

    async def record_issuance(self, identity: str) -> bool:
        """
        Count one issuance for ``identity``.

        Returns:
            True if the issuance fits within the window, False if the cap
            was already reached or the counter could not be updated
        """
        try:
            return await self._strategy.hit(self.item, NAMESPACE, identity)
        except Exception as e:
            logger.error(
                f"Rate limit storage failure for {identity}, denying issuance: {str(e)}",
                exc_info=True
            )
            return False
