"""
Request dependencies shared by the routers.
Service getters are plain functions so tests can swap them through
app.dependency_overrides.
"""
import json
import logging
from typing import Optional
from urllib.parse import unquote

from fastapi import Header, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from omg_tv.config import get_settings
from omg_tv.models.user_config import UserConfig
from omg_tv.services.cache import get_cache
from omg_tv.services.catalog import CatalogQueryEngine
from omg_tv.services.channel_cache import get_channel_cache
from omg_tv.services.epg_store import get_epg_store
from omg_tv.services.playlist_generator import get_playlist_generator
from omg_tv.services.resolver import get_resolver_manager
from omg_tv.services.stream_proxy import get_proxy_manager
from omg_tv.services.streams import StreamResolutionPipeline

logger = logging.getLogger(__name__)

# Rate limiter
limiter = Limiter(key_func=get_remote_address)

EXTRA_KEYS = ("genre", "search", "skip")


def parse_extra(extra: Optional[str]) -> dict:
    """
    Parse the extra path segment of a catalog request.

    Accepts "genre=Sport&skip=100", "search=rai", "skip=100" or a JSON
    object. Anything else means no extras.
    """
    if not extra:
        return {}

    decoded = unquote(extra)
    if decoded.startswith(tuple(f"{key}=" for key in EXTRA_KEYS)):
        params = {}
        for part in decoded.split("&"):
            key, _, value = part.partition("=")
            if key in EXTRA_KEYS and key not in params:
                params[key] = value
        return params

    try:
        data = json.loads(decoded)
    except ValueError:
        logger.debug(f"Ignoring unparseable catalog extra: {extra}")
        return {}
    return data if isinstance(data, dict) else {}


def config_from_request(request: Request, config: Optional[str] = None) -> UserConfig:
    """User configuration from the base64 path segment or the query string."""
    if config:
        return UserConfig.decode(config)
    return UserConfig.from_params(dict(request.query_params))


async def require_admin_key(
    x_admin_key_header: Optional[str] = Header(None, alias="X-Admin-Key"),
    x_admin_key: Optional[str] = Query(None, alias="X-Admin-Key"),
):
    """Reject admin requests without the configured key (header or query)."""
    settings = get_settings()
    if (x_admin_key_header or x_admin_key) != settings.admin_api_key:
        raise HTTPException(status_code=401, detail="Invalid or missing admin API key")


async def get_catalog_engine() -> CatalogQueryEngine:
    return CatalogQueryEngine(get_channel_cache(), await get_epg_store())


async def get_stream_pipeline() -> StreamResolutionPipeline:
    return StreamResolutionPipeline(
        channels=get_channel_cache(),
        epg=await get_epg_store(),
        proxy=get_proxy_manager(),
        resolver=get_resolver_manager(),
        regenerator=await get_playlist_generator(),
    )


async def get_cache_service():
    return await get_cache()
