"""
Caseflow - legal case workflow service

FastAPI application entry point.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from caseflow import __version__
from caseflow.config import settings
from caseflow.db.orm import Base
from caseflow.db.repositories import CaseNotFoundError, ConcurrentUpdateError, PersistenceError
from caseflow.legal.errors import WorkflowError
from caseflow.legal.models import utcnow
from caseflow.notifications import build_notifier

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_requests}/{settings.rate_limit_window_seconds}seconds"],
    enabled=settings.rate_limit_enabled,
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # HSTS (only in production with HTTPS)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with an ID and timing."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.time()

        request_id = request.headers.get("X-Request-ID", f"req_{uuid.uuid4().hex[:12]}")

        logger.info(
            f"Request: {request.method} {request.url.path} "
            f"[{request_id}] from {request.client.host if request.client else 'unknown'}"
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time)

        logger.info(
            f"Response: {request.method} {request.url.path} "
            f"[{request_id}] status={response.status_code} time={process_time:.3f}s"
        )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting Caseflow...")

    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
    )
    if settings.auto_create_schema:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    app.state.engine = engine
    app.state.db_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    app.state.notifier = build_notifier()

    logger.info("Caseflow started successfully")

    yield

    logger.info("Shutting down Caseflow...")
    await app.state.notifier.close()
    await engine.dispose()
    logger.info("Caseflow shutdown complete")


app = FastAPI(
    title="Caseflow",
    description="Legal case workflow service for immigration matters",
    version=__version__,
    lifespan=lifespan,
    # Disable docs in production
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
)

# Rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# Security headers middleware (must be added before CORS)
app.add_middleware(SecurityHeadersMiddleware)

# Request logging middleware
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "X-Request-ID",
        "X-User-Id",
        "X-User-Name",
    ],
    expose_headers=["X-Request-ID", "X-Process-Time"],
    max_age=600,  # Cache preflight for 10 minutes
)


# Rate limit exceeded handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "message": "Too many requests. Please try again later.",
            "retry_after": exc.detail,
        },
        headers={"Retry-After": str(exc.detail)},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Report HTTP errors as {"error": reason}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle malformed or missing request fields."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "Request validation failed",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    """Workflow precondition violations that escaped a handler."""
    return JSONResponse(status_code=exc.http_status, content={"error": exc.message})


@app.exception_handler(CaseNotFoundError)
@app.exception_handler(ConcurrentUpdateError)
async def case_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Missing cases and lost compare-and-swap races."""
    return JSONResponse(status_code=exc.http_status, content={"error": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """Storage failures; details stay in the server log."""
    logger.error(f"Persistence failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": "Storage is temporarily unavailable. Please try again."},
    )


@app.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns the status of the database.
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": __version__,
        "services": {},
    }

    try:
        async with request.app.state.db_session() as session:
            await session.execute(text("SELECT 1"))
        health_status["services"]["database"] = {"status": "healthy"}
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {e}")
        health_status["services"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    return health_status


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": "Caseflow",
        "description": "Legal case workflow service",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions securely."""
    logger.exception(f"Unhandled exception: {exc}")

    # Never expose internal error details in production
    if settings.is_production:
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please contact support.",
            },
        )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc),
            "type": type(exc).__name__,
        },
    )


# Import and include routers
from caseflow.api.routes import case_types_router, legal_cases_router

app.include_router(legal_cases_router, prefix="/api/v1/legal-cases", tags=["legal-cases"])
app.include_router(case_types_router, prefix="/api/v1/case-types", tags=["case-types"])
