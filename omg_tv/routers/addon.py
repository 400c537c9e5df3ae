"""
Addon protocol endpoints (manifest, catalog, stream, meta).
Every route exists with and without the base64 configuration segment.
Failures become empty results; only the rate limiter answers with an error.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request

from omg_tv.config import get_settings
from omg_tv.dependencies import (
    config_from_request,
    get_catalog_engine,
    get_stream_pipeline,
    limiter,
    parse_extra,
)
from omg_tv.services.catalog import CatalogQueryEngine, CatalogRequest
from omg_tv.services.channel_cache import ChannelCache, get_channel_cache
from omg_tv.services.manifest import build_manifest
from omg_tv.services.streams import StreamResolutionPipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["addon"])


def _addon_limit() -> str:
    return f"{get_settings().rate_limit_per_minute}/minute"


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _manifest_response(genres: list[str], configuration_url: str) -> dict:
    return build_manifest(genres, configuration_url).model_dump()


def _catalog_request(request: Request, extra: Optional[str]) -> CatalogRequest:
    params = {key: request.query_params.get(key) for key in ("search", "genre", "skip")}
    params.update(parse_extra(extra))
    return CatalogRequest(
        search=params.get("search") or None,
        genre=params.get("genre") or None,
        skip=params.get("skip") or 0,
    )


# Manifest
@router.get("/manifest.json")
@limiter.limit(_addon_limit)
async def manifest(request: Request, channel_cache: ChannelCache = Depends(get_channel_cache)):
    """Manifest for query-string configured installs."""
    query = urlencode(dict(request.query_params))
    configuration_url = f"{_base_url(request)}/?{query}"
    return _manifest_response(channel_cache.get_genres(), configuration_url)


# Catalog
@router.get("/catalog/{type}/{id}.json")
@router.get("/catalog/{type}/{id}/{extra}.json")
@limiter.limit(_addon_limit)
async def catalog(
    request: Request,
    type: str,
    id: str,
    extra: Optional[str] = None,
    engine: CatalogQueryEngine = Depends(get_catalog_engine),
):
    user_config = config_from_request(request)
    page = await engine.query_catalog(_catalog_request(request, extra), user_config)
    return page.model_dump()


# Stream
@router.get("/stream/{type}/{id}.json")
@limiter.limit(_addon_limit)
async def stream(
    request: Request,
    type: str,
    id: str,
    pipeline: StreamResolutionPipeline = Depends(get_stream_pipeline),
):
    user_config = config_from_request(request)
    streams = await pipeline.resolve_streams(id, user_config)
    return {"streams": [s.model_dump(exclude_none=True) for s in streams]}


# Meta
@router.get("/meta/{type}/{id}.json")
@limiter.limit(_addon_limit)
async def meta(
    request: Request,
    type: str,
    id: str,
    engine: CatalogQueryEngine = Depends(get_catalog_engine),
):
    user_config = config_from_request(request)
    entry = await engine.get_meta(id, user_config)
    return {"meta": entry.model_dump() if entry else None}


# Path-configured variants
@router.get("/{config}/manifest.json")
@limiter.limit(_addon_limit)
async def configured_manifest(
    request: Request,
    config: str,
    channel_cache: ChannelCache = Depends(get_channel_cache),
):
    configuration_url = f"{_base_url(request)}/{config}/configure"
    return _manifest_response(channel_cache.get_genres(), configuration_url)


@router.get("/{config}/catalog/{type}/{id}.json")
@router.get("/{config}/catalog/{type}/{id}/{extra}.json")
@limiter.limit(_addon_limit)
async def configured_catalog(
    request: Request,
    config: str,
    type: str,
    id: str,
    extra: Optional[str] = None,
    engine: CatalogQueryEngine = Depends(get_catalog_engine),
):
    user_config = config_from_request(request, config)
    page = await engine.query_catalog(_catalog_request(request, extra), user_config)
    return page.model_dump()


@router.get("/{config}/stream/{type}/{id}.json")
@limiter.limit(_addon_limit)
async def configured_stream(
    request: Request,
    config: str,
    type: str,
    id: str,
    pipeline: StreamResolutionPipeline = Depends(get_stream_pipeline),
):
    user_config = config_from_request(request, config)
    streams = await pipeline.resolve_streams(id, user_config)
    return {"streams": [s.model_dump(exclude_none=True) for s in streams]}


@router.get("/{config}/meta/{type}/{id}.json")
@limiter.limit(_addon_limit)
async def configured_meta(
    request: Request,
    config: str,
    type: str,
    id: str,
    engine: CatalogQueryEngine = Depends(get_catalog_engine),
):
    user_config = config_from_request(request, config)
    entry = await engine.get_meta(id, user_config)
    return {"meta": entry.model_dump() if entry else None}
