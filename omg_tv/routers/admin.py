"""
Admin API endpoints.
Channel snapshot and EPG ingestion, playlist regeneration and resolver
maintenance, periodic update scheduling. All routes require the X-Admin-Key
header or query parameter.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from omg_tv.config import get_settings
from omg_tv.dependencies import config_from_request, get_cache_service, limiter, require_admin_key
from omg_tv.models.channel import ChannelImport
from omg_tv.models.epg import EPGImport
from omg_tv.services.cache import CacheService
from omg_tv.services.channel_cache import ChannelCache, get_channel_cache
from omg_tv.services.epg_store import EPGStore, get_epg_store
from omg_tv.services.playlist_generator import PlaylistGenerator, get_playlist_generator
from omg_tv.services.resolver import ResolverStreamManager, get_resolver_manager
from omg_tv.services.scheduler import (
    ScheduleError,
    UpdateScheduler,
    get_playlist_scheduler,
    get_resolver_scheduler,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_key)],
)


def _regenerate_limit() -> str:
    return f"{get_settings().admin_rate_limit_per_minute}/minute"


@router.post("/channels")
async def import_channels(
    payload: ChannelImport,
    channel_cache: ChannelCache = Depends(get_channel_cache),
    cache: CacheService = Depends(get_cache_service),
):
    """Replace the channel snapshot."""
    if not payload.channels:
        raise HTTPException(status_code=400, detail="No channels provided")

    snapshot = await channel_cache.replace(payload.channels, cache)
    return {
        "status": "completed",
        "channels": len(snapshot.channels),
        "genres": list(snapshot.genres),
    }


@router.post("/epg")
async def import_epg(
    payload: EPGImport,
    epg_store: EPGStore = Depends(get_epg_store),
):
    """Import already-parsed EPG channels and programs."""
    if not payload.channels and not payload.programs:
        raise HTTPException(status_code=400, detail="No EPG data provided")

    results = await epg_store.import_data(payload)
    return {"status": "completed", "imported": results}


@router.delete("/epg")
async def clear_epg(cache: CacheService = Depends(get_cache_service)):
    """Remove all EPG data."""
    await cache.clear_epg()
    logger.info("EPG data cleared")
    return {"status": "cleared"}


@router.get("/epg/stats")
async def epg_stats(cache: CacheService = Depends(get_cache_service)):
    return await cache.get_epg_stats()


@router.post("/playlist/regenerate")
@limiter.limit(_regenerate_limit)
async def regenerate_playlist(
    request: Request,
    config: Optional[str] = Query(None, description="Base64 user configuration"),
    generator: PlaylistGenerator = Depends(get_playlist_generator),
):
    """
    Run the playlist generator script and rebuild the channel cache.

    The user configuration comes from the base64 `config` parameter or the
    plain query string (python_script_url selects a remote script).
    """
    user_config = config_from_request(request, config)
    success = await generator.regenerate(user_config)
    return {
        "status": "completed" if success else "failed",
        "error": generator.last_error,
        "generator": generator.get_status(),
    }


@router.get("/resolver/status")
async def resolver_status(
    resolver: ResolverStreamManager = Depends(get_resolver_manager),
    scheduler: UpdateScheduler = Depends(get_resolver_scheduler),
):
    return {**resolver.get_status(), "schedule": scheduler.get_status()}


@router.post("/resolver/clear-cache")
async def clear_resolver_cache(resolver: ResolverStreamManager = Depends(get_resolver_manager)):
    resolver.clear_cache()
    return {"status": "cleared"}


@router.post("/resolver/check")
async def check_resolver(
    request: Request,
    config: Optional[str] = Query(None, description="Base64 user configuration"),
    resolver: ResolverStreamManager = Depends(get_resolver_manager),
):
    """Run the resolver script's self check."""
    user_config = config_from_request(request, config)
    if not user_config.resolver_script:
        raise HTTPException(status_code=400, detail="No resolver script configured")

    healthy = await resolver.check_health(user_config.resolver_script)
    return {"healthy": healthy, "error": None if healthy else resolver.last_error}


@router.post("/resolver/schedule")
async def schedule_resolver_updates(
    request: Request,
    config: Optional[str] = Query(None, description="Base64 user configuration"),
    interval: Optional[str] = Query(None, description="HH:MM, defaults to resolver_update_interval"),
    resolver: ResolverStreamManager = Depends(get_resolver_manager),
    scheduler: UpdateScheduler = Depends(get_resolver_scheduler),
):
    """Re-fetch the resolver script periodically."""
    user_config = config_from_request(request, config)
    source = user_config.resolver_script
    if not source:
        raise HTTPException(status_code=400, detail="No resolver script configured")

    try:
        delta = scheduler.schedule(
            interval or user_config.resolver_update_interval,
            lambda: resolver.refresh_script(source),
        )
    except ScheduleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "scheduled", "interval": str(delta)}


@router.delete("/resolver/schedule")
async def stop_resolver_updates(scheduler: UpdateScheduler = Depends(get_resolver_scheduler)):
    stopped = await scheduler.stop()
    return {"status": "stopped" if stopped else "not_scheduled"}


@router.post("/playlist/schedule")
async def schedule_playlist_updates(
    request: Request,
    config: Optional[str] = Query(None, description="Base64 user configuration"),
    interval: Optional[str] = Query(None, description="HH:MM, defaults to python_update_interval"),
    generator: PlaylistGenerator = Depends(get_playlist_generator),
    scheduler: UpdateScheduler = Depends(get_playlist_scheduler),
):
    """Regenerate the playlist periodically with the given configuration."""
    user_config = config_from_request(request, config)
    try:
        delta = scheduler.schedule(
            interval or user_config.python_update_interval,
            lambda: generator.regenerate(user_config),
        )
    except ScheduleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "scheduled", "interval": str(delta)}


@router.delete("/playlist/schedule")
async def stop_playlist_updates(scheduler: UpdateScheduler = Depends(get_playlist_scheduler)):
    stopped = await scheduler.stop()
    return {"status": "stopped" if stopped else "not_scheduled"}
