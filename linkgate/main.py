"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes (challenge issuance/verification, admin rate-limit proxy)
- Middleware (logging, CORS)
- Error rendering: every error body has the shape {"error": "..."}
- Startup/shutdown of shared services
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from linkgate.api import admin, endpoints
from linkgate.core.exceptions import LinkGateException
from linkgate.core.rate_limit import limiter
from linkgate.core.service_manager import initialize_services, shutdown_services
from linkgate.core.setting import settings
from linkgate.middleware.logging import add_logging_middleware

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Link Gate Service",
    description="Link redirection backend with signed anti-bot challenges",
    version="1.0.0",
    # Interactive docs are only served outside production
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
)

app.state.limiter = limiter


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"error": "Invalid request"})


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"error": f"Rate limit exceeded: {exc.detail}"},
    )


@app.exception_handler(LinkGateException)
async def linkgate_exception_handler(request: Request, exc: LinkGateException):
    logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.public_message},
    )


add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint for health checks."""
    return {
        "message": "Link Gate Service",
        "version": "1.0.0",
        "docs": app.docs_url
    }


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy"}


app.include_router(endpoints.router, tags=["Challenge"])
app.include_router(admin.router, tags=["Admin"])


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    await initialize_services()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    await shutdown_services()
