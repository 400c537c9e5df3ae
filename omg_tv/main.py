"""
OMG TV - FastAPI Backend

Live TV addon backend: catalog, streams and meta for addon clients.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from omg_tv.config import get_settings
from omg_tv.dependencies import limiter
from omg_tv.services.cache import get_cache
from omg_tv.services.channel_cache import get_channel_cache
from omg_tv.services.scheduler import stop_all_schedulers
from omg_tv.routers import addon, admin

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("Starting OMG TV backend...")

    # Initialize cache database
    cache = await get_cache()
    logger.info("Cache initialized")

    # Serve the persisted channel snapshot
    snapshot = await get_channel_cache().load(cache)
    if snapshot.channels:
        logger.info(f"Loaded {len(snapshot.channels)} channels from cache")
    else:
        logger.info("Channel cache empty, waiting for an import or playlist regeneration")

    yield

    logger.info("Shutting down OMG TV backend...")
    await stop_all_schedulers()


# Create FastAPI app
settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Live TV addon backend with EPG, resolver and proxy support",
    lifespan=lifespan
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API endpoints
@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    snapshot = get_channel_cache().snapshot
    return {
        "status": "healthy",
        "version": settings.app_version,
        "channels": len(snapshot.channels),
    }


# Admin routes first: the addon router has catch-all "/{config}/..." paths
app.include_router(admin.router)
app.include_router(addon.router)


# Error handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "omg_tv.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
