"""
EPG lookup service.
Answers current/upcoming program and icon queries for a linkage id.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from omg_tv.config import get_settings
from omg_tv.models.epg import EPGImport, Program
from omg_tv.services.cache import CacheService, get_cache
from omg_tv.services.display import normalize_id

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EPGStore:
    """EPG view backed by the SQLite cache."""

    def __init__(self, cache: CacheService, upcoming_limit: Optional[int] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self.cache = cache
        self.upcoming_limit = upcoming_limit or get_settings().epg_upcoming_limit
        self._clock = clock

    async def get_current_program(self, channel_id: str) -> Optional[Program]:
        channel_id = normalize_id(channel_id)
        if not channel_id:
            return None
        return await self.cache.get_current_program(channel_id, self._clock())

    async def get_upcoming_programs(self, channel_id: str) -> list[Program]:
        channel_id = normalize_id(channel_id)
        if not channel_id:
            return []
        return await self.cache.get_upcoming_programs(
            channel_id, self._clock(), limit=self.upcoming_limit
        )

    async def get_channel_icon(self, linkage_id: str) -> Optional[str]:
        channel_id = normalize_id(linkage_id)
        if not channel_id:
            return None
        return await self.cache.get_epg_icon(channel_id)

    async def import_data(self, payload: EPGImport) -> dict:
        """Store already-parsed EPG channels and programs."""
        if payload.channels:
            await self.cache.store_epg_channels(payload.channels)
        programs = await self.cache.store_epg_programs(payload.programs)
        pruned = await self.cache.prune_programs(self._clock())
        logger.info(
            f"EPG import: {len(payload.channels)} channels, {programs} programs, "
            f"{pruned} expired programs pruned"
        )
        return {"channels": len(payload.channels), "programs": programs, "pruned": pruned}


# Singleton
_epg_store: Optional[EPGStore] = None


async def get_epg_store() -> EPGStore:
    """Get or create EPG store singleton."""
    global _epg_store
    if _epg_store is None:
        _epg_store = EPGStore(await get_cache())
    return _epg_store
