"""
NPC Forge API - D&D NPC Generation Service
FastAPI Backend Entry Point
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.database import init_db
from app.core.exceptions import NPCForgeError
from app.api import admin, npc_generator
from app.workers.scheduler import CleanupScheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(f"Starting {settings.APP_NAME}...")
    init_db()

    scheduler = CleanupScheduler()
    if settings.NPC_CLEANUP_ENABLED:
        scheduler.start()
    app.state.cleanup_scheduler = scheduler

    yield

    await scheduler.stop()
    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(
    title=settings.APP_NAME,
    description="D&D NPC generation and management for Dungeon Masters",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NPCForgeError)
async def npc_error_handler(request: Request, exc: NPCForgeError):
    """Map service errors to their status code and public message."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": exc.public_message},
    )


# Include routers
app.include_router(npc_generator.router, prefix="/api/v1/npc-generator", tags=["NPC Generator"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for monitoring.
    Returns detailed status of critical services.
    """
    status = {
        "status": "healthy",
        "version": app.version,
        "services": {}
    }

    # Check database connection
    try:
        from app.core.database import SessionLocal
        from sqlalchemy import text
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
        status["services"]["database"] = "ok"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        status["services"]["database"] = "error"
        status["status"] = "degraded"

    # Redis only backs queued maintenance jobs
    from app.core.redis import redis_health_check
    redis_status = redis_health_check()
    status["services"]["redis"] = "ok" if redis_status.get("connected") else "unavailable"

    status["services"]["generation"] = "configured" if settings.GROQ_API_KEY else "missing GROQ_API_KEY"
    if not settings.GROQ_API_KEY:
        status["status"] = "degraded"

    return status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": "NPC Forge API - D&D NPC Generation Service",
        "docs": "/docs",
        "health": "/health",
    }
