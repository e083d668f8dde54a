"""
Request Logging Middleware

One access-log line per request on the "linkgate" logger:

    GET /api/challenge 200 3.41ms IP:203.0.113.7 id:5f0c...

The client IP is resolved the same way the rate limiters resolve it, so log
lines can be matched against 429s and suspicious-IP flags. Each response
carries X-Request-ID and X-Process-Time.

Exceptions that escape every handler are logged with their traceback here
and answered with the generic {"error": "Internal error"} body.
"""

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from linkgate.core.client_ip import get_client_ip

logger = logging.getLogger("linkgate")

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        client_ip = get_client_ip(request)
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                f"Unhandled error on {request.method} {request.url.path} "
                f"IP:{client_ip} id:{request_id}"
            )
            response = JSONResponse(status_code=500, content={"error": "Internal error"})

        elapsed = time.perf_counter() - started
        logger.info(
            f"{request.method} {request.url.path} "
            f"{response.status_code} {elapsed * 1000:.2f}ms "
            f"IP:{client_ip} id:{request_id}"
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        return response


def add_logging_middleware(app: FastAPI) -> None:
    app.add_middleware(LoggingMiddleware)
