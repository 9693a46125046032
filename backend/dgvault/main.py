"""Main FastAPI application."""

import asyncio
import contextlib
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dgvault.config import settings
from dgvault.core.errors import VaultError, RateLimited
from dgvault.core.log_config import configure_logging
from dgvault.core.rate_limit import withdrawal_rate_limiter
from dgvault.api import withdrawals, admin, vendor, config

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="DG Vault API",
    version="1.0.0",
    description="Token vendor quotes, swap approvals and signed XP-to-DG withdrawals"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(withdrawals.router, prefix=settings.API_V1_PREFIX)
app.include_router(admin.router, prefix=settings.API_V1_PREFIX)
app.include_router(vendor.router, prefix=settings.API_V1_PREFIX)
app.include_router(config.router, prefix=settings.API_V1_PREFIX)

_sweeper_task = None


@app.on_event("startup")
async def startup():
    """Application startup tasks."""
    global _sweeper_task
    configure_logging()
    _sweeper_task = asyncio.create_task(
        withdrawal_rate_limiter.run_sweeper(settings.RATE_LIMIT_SWEEP_INTERVAL)
    )
    logger.info(f"DG Vault API starting (environment: {settings.ENVIRONMENT}, chain: {settings.CHAIN_ID})")


@app.on_event("shutdown")
async def shutdown():
    """Application shutdown tasks."""
    if _sweeper_task is not None:
        _sweeper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await _sweeper_task
    logger.info("DG Vault API shutting down")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "DG Vault API",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
    }


@app.exception_handler(VaultError)
async def vault_error_handler(request: Request, exc: VaultError):
    """Render service errors as {success: false, error, code}."""
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else "Invalid request body"
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": message, "code": "INVALID_REQUEST"}
    )


# Global exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"}
    )
