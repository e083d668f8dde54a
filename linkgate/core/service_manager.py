"""
Service Manager

This module manages the process-wide service instances shared across
requests:
- IssuanceLimiter: challenge issuance counters
- AdminRateLimitProxy: HTTP client for the CAPTCHA admin API
- The background task purging expired records

Design:
- Created on application startup, torn down on shutdown
- Getters create the instance on first use if startup has not run, so
  handlers never see None
- Each instance keeps its own in-memory counters unless
  RATE_LIMIT_STORAGE_URI points at a shared store
"""

import asyncio
import logging
from typing import Optional

from linkgate.core.setting import settings
from linkgate.db.session import async_session_maker, create_db_and_tables, db_adapter
from linkgate.services.admin_proxy import AdminProxyConfig, AdminRateLimitProxy
from linkgate.services.background_tasks import run_purge_loop
from linkgate.services.issuance_limiter import IssuanceLimiter

logger = logging.getLogger(__name__)

_issuance_limiter: Optional[IssuanceLimiter] = None
_admin_proxy: Optional[AdminRateLimitProxy] = None
_purge_task: Optional[asyncio.Task] = None


def get_issuance_limiter() -> IssuanceLimiter:
    """Return the shared issuance limiter, creating it if needed."""
    global _issuance_limiter
    if _issuance_limiter is None:
        _issuance_limiter = IssuanceLimiter(
            limit=settings.CHALLENGE_RATE_LIMIT,
            storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        )
    return _issuance_limiter


def get_admin_proxy() -> AdminRateLimitProxy:
    """Return the shared admin proxy, creating it if needed."""
    global _admin_proxy
    if _admin_proxy is None:
        _admin_proxy = AdminRateLimitProxy(AdminProxyConfig.from_settings(settings))
    return _admin_proxy


async def initialize_services() -> None:
    """Create tables, shared services and the purge task."""
    global _purge_task

    await create_db_and_tables()

    limiter = get_issuance_limiter()
    proxy = get_admin_proxy()
    if not proxy.config.is_configured:
        logger.warning("CAPTCHA_API_URL or CAPTCHA_ADMIN_KEY not set; admin proxy disabled")
    if not settings.CHALLENGE_SECRET:
        logger.warning("CHALLENGE_SECRET not set; challenge issuance will fail")

    if _purge_task is None:
        _purge_task = asyncio.create_task(
            run_purge_loop(
                async_session_maker,
                db_adapter,
                limiter,
                settings.PURGE_INTERVAL_SECONDS,
            )
        )

    logger.info(
        f"Services initialized: challenge_limit={limiter.limit_string}, "
        f"rate_limit_storage={settings.RATE_LIMIT_STORAGE_URI}"
    )


async def shutdown_services() -> None:
    """Stop the purge task and close outbound connections."""
    global _admin_proxy, _purge_task

    if _purge_task is not None:
        _purge_task.cancel()
        try:
            await _purge_task
        except asyncio.CancelledError:
            pass
        _purge_task = None

    if _admin_proxy is not None:
        try:
            await _admin_proxy.aclose()
        except Exception as e:
            logger.warning(f"Failed to close admin proxy client: {e}")
        _admin_proxy = None
