"""
FastAPI Endpoints for the Admin Rate-Limit Proxy

Admin-only pass-through to the external CAPTCHA service's rate-limit
configuration. Checks run in order: admin session (401), proxy
configuration (500), then the upstream call. The upstream status and JSON
body are relayed as received.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from linkgate.api.dependencies import require_admin
from linkgate.api.schemas import ErrorResponse
from linkgate.core.exceptions import UpstreamError
from linkgate.core.rate_limit import RATE_LIMITS, limiter
from linkgate.core.service_manager import get_admin_proxy
from linkgate.services.admin_proxy import AdminRateLimitProxy, UpstreamResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin")

ERROR_RESPONSES = {
    status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def _ensure_configured(proxy: AdminRateLimitProxy) -> None:
    if not proxy.config.is_configured:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="CAPTCHA API not configured"
        )


def _relay(upstream: UpstreamResponse) -> JSONResponse:
    return JSONResponse(content=upstream.body, status_code=upstream.status_code)


@router.get(
    "/ratelimit",
    responses=ERROR_RESPONSES,
    summary="Read CAPTCHA rate limits",
    description="Fetches the rate-limit configuration from the CAPTCHA service"
)
@limiter.limit(RATE_LIMITS["admin"])
async def get_rate_limits(
    request: Request,  # Required for rate limiting
    claims: dict[str, Any] = Depends(require_admin),
    proxy: AdminRateLimitProxy = Depends(get_admin_proxy)
) -> JSONResponse:
    _ensure_configured(proxy)

    try:
        upstream = await proxy.fetch_rate_limits()
    except UpstreamError as e:
        raise HTTPException(status_code=e.status_code, detail=e.public_message)
    except Exception as e:
        logger.error(f"Rate limit fetch error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error"
        )

    return _relay(upstream)


@router.post(
    "/ratelimit",
    responses=ERROR_RESPONSES,
    summary="Update CAPTCHA rate limits",
    description="Forwards the JSON body to the CAPTCHA service's rate-limit configuration"
)
@limiter.limit(RATE_LIMITS["admin"])
async def update_rate_limits(
    request: Request,
    claims: dict[str, Any] = Depends(require_admin),
    proxy: AdminRateLimitProxy = Depends(get_admin_proxy)
) -> JSONResponse:
    """
    Forward an arbitrary JSON body upstream.

    An unreadable request body is treated like any other failure: 500
    with a generic message.
    """
    _ensure_configured(proxy)

    try:
        payload = await request.json()
        logger.info(f"Admin {claims.get('sub')} updating CAPTCHA rate limits")
        upstream = await proxy.update_rate_limits(payload)
    except UpstreamError as e:
        raise HTTPException(status_code=e.status_code, detail=e.public_message)
    except Exception as e:
        logger.error(f"Rate limit update error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error"
        )

    return _relay(upstream)
