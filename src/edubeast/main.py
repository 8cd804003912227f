"""
EduBeast API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Logging
- Database and Redis connections
- Background job scheduler
- CORS middleware
- API routing
- Health check endpoints
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from edubeast.api import api_router
from edubeast.core import redis as redis_module
from edubeast.core.config import settings
from edubeast.core.database import close_db, init_db
from edubeast.core.logging_config import setup_logging
from edubeast.core.redis import close_redis, init_redis
from edubeast.core.scheduler import (
    list_registered_jobs,
    start_scheduler,
    stop_scheduler,
    trigger_job_manually,
)
from edubeast.modules.user_applications import register_user_application_jobs


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events including:
    - Redis connection (optional; in-memory fallbacks are used without it)
    - Database connection
    - Background job scheduler
    """
    setup_logging()
    print(f"Starting {settings.app_name} in {settings.python_env} mode...")

    try:
        await init_redis()
        print("[OK] Redis connected")
    except Exception as e:
        print(f"[FAIL] Redis connection failed, using in-memory fallbacks: {e}")

    try:
        await init_db()
        print("[OK] Database connected")
    except Exception as e:
        print(f"[FAIL] Database connection failed: {e}")
        if settings.is_production:
            raise

    if settings.scheduler_enabled:
        try:
            # Register jobs before starting the scheduler
            register_user_application_jobs()
            await start_scheduler()
            print("[OK] Background scheduler started")
        except Exception as e:
            print(f"[FAIL] Background scheduler failed to start: {e}")
            if settings.is_production:
                raise
    else:
        print("[OK] Background scheduler disabled")

    yield  # Application runs here

    print(f"Shutting down {settings.app_name}...")

    # Stop the scheduler first (wait for running jobs)
    await stop_scheduler()
    await close_redis()
    await close_db()
    print("[OK] Cleanup complete")


app = FastAPI(
    title=settings.app_name,
    description="Applications, approvals and school onboarding for EduBeast",
    version=settings.app_version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint - API welcome message."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "status": "running",
        "environment": settings.python_env,
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, str]:
    """Readiness check endpoint."""
    return {
        "status": "ready",
        "redis": "connected" if redis_module.redis_client is not None else "fallback",
    }


# ============================================
# Background Job Debug Endpoints
# ============================================
# Development only. In production, jobs run on schedule.


def _require_development() -> None:
    if not settings.is_development:
        raise HTTPException(status_code=404, detail="Not Found")


@app.get("/debug/scheduler", tags=["Debug"])
async def list_jobs():
    """List registered background jobs with their next run time."""
    _require_development()
    return {"jobs": list_registered_jobs()}


@app.post("/debug/scheduler/{job_id}/trigger", tags=["Debug"])
async def trigger_job(job_id: str):
    """
    Run a background job now, bypassing its schedule.

    Args:
        job_id: Registered job ID, e.g. ``pending_applications_digest``

    Raises:
        HTTPException 400: If job_id is not registered
    """
    _require_development()
    try:
        return await trigger_job_manually(job_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
