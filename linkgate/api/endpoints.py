"""
FastAPI Endpoints for the Challenge Service

This module defines the challenge REST API with minimal logic.
Endpoints only handle:
- Client identity extraction
- Rate limiting
- Mapping service outcomes to HTTP responses

All business logic is in services.
Unexpected failures are logged with their traceback and answered with a
generic message; internal detail never reaches the caller.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import async_sessionmaker

from linkgate.api.dependencies import get_challenge_service, get_session_maker
from linkgate.api.schemas import (
    ChallengeResponse,
    ErrorResponse,
    VerifyChallengeRequest,
    VerifyChallengeResponse,
)
from linkgate.core.client_ip import get_client_ip
from linkgate.core.exceptions import ChallengeVerificationError
from linkgate.core.rate_limit import RATE_LIMITS, limiter
from linkgate.services.background_tasks import flag_ip_background
from linkgate.services.challenge_service import ChallengeService

logger = logging.getLogger(__name__)

CHALLENGE_RATE_LIMIT_MESSAGE = "Rate limit exceeded. Maximum 10 challenges per minute."

router = APIRouter()


@router.get(
    "/api/challenge",
    response_model=ChallengeResponse,
    responses={
        status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
    summary="Issue a challenge",
    description="Returns a signed, short-lived challenge the client must solve before protected calls"
)
async def issue_challenge(
    request: Request,
    challenge_service: ChallengeService = Depends(get_challenge_service)
) -> ChallengeResponse:
    """
    Issue a challenge to the requesting client.

    The rotating secret is part of the response on purpose: the client's
    proof of work is computed over it.

    Raises:
        HTTPException 429: If the client already obtained its quota this minute
        HTTPException 500: If the challenge could not be generated
    """
    try:
        client_ip = get_client_ip(request)
        challenge = await challenge_service.generate_challenge(
            client_ip, request.headers.get("user-agent")
        )
    except Exception as e:
        logger.error(f"Challenge generation error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate challenge"
        )

    if challenge is None:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=CHALLENGE_RATE_LIMIT_MESSAGE
        )

    return ChallengeResponse(**challenge.to_public_dict())


@router.post(
    "/api/challenge/verify",
    response_model=VerifyChallengeResponse,
    responses={
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
    summary="Submit a challenge proof",
    description="Verifies a client proof of work and consumes the challenge"
)
@limiter.limit(RATE_LIMITS["verify"])
async def verify_challenge(
    request: Request,  # Required for rate limiting (slowapi expects parameter named 'request')
    body: VerifyChallengeRequest,
    background_tasks: BackgroundTasks,
    challenge_service: ChallengeService = Depends(get_challenge_service),
    session_maker: async_sessionmaker = Depends(get_session_maker)
) -> VerifyChallengeResponse:
    """
    Verify a proof of work against an outstanding challenge.

    A rejected proof flags the client IP as suspicious in the background.

    Raises:
        HTTPException 403: If the challenge or the proof is rejected
        HTTPException 500: If verification could not be carried out
    """
    client_ip = get_client_ip(request)
    try:
        await challenge_service.verify_client_proof(
            challenge_id=body.challenge_id,
            proof=body.proof,
            timing=body.timing,
            entropy=body.entropy,
            counter=body.counter,
            ip=client_ip,
            user_agent=request.headers.get("user-agent"),
        )
    except ChallengeVerificationError as e:
        logger.info(f"Challenge {body.challenge_id} rejected for {client_ip}: {e.reason}")
        background_tasks.add_task(
            flag_ip_background,
            session_maker,
            client_ip,
            e.reason,
        )
        # Raising would drop the background task, so answer directly
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"error": e.reason},
            background=background_tasks
        )
    except Exception as e:
        logger.error(f"Challenge verification error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to verify challenge"
        )

    return VerifyChallengeResponse(valid=True)
