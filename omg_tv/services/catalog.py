"""
Catalog query engine.

Turns a catalog request (search / genre / skip) into a page of display-ready
catalog entries enriched with EPG data.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from omg_tv.config import Settings, get_settings
from omg_tv.models.channel import Channel
from omg_tv.models.epg import Program
from omg_tv.models.stremio import CatalogEntry, CatalogPage
from omg_tv.models.user_config import UserConfig
from omg_tv.services.channel_cache import ChannelCache, FilterKind
from omg_tv.services.display import (
    format_time,
    language_tag,
    normalize_id,
    placeholder_image_url,
)

logger = logging.getLogger(__name__)

# Some clients append the paging offset to the genre value: "Sport&skip=100"
GENRE_SKIP_MARKER = "&skip"
GENRE_SKIP_PATTERN = re.compile(r'^=\s*(\d+)')

LIVE_RELEASE_INFO = "LIVE"
LIVE_MARKER = "LIVE NOW"
STATIC_DESCRIPTION_PREFIX = "Live channel"


@dataclass
class CatalogRequest:
    """Catalog extras sent by the client."""
    search: Optional[str] = None
    genre: Optional[str] = None
    skip: Any = 0


def normalize_skip(value: Any) -> int:
    """Non-negative integer offset; anything malformed is 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        skip = int(str(value).strip())
    except ValueError:
        return 0
    return max(skip, 0)


def split_genre_skip(genre: Optional[str], skip: int) -> tuple[Optional[str], int]:
    """Separate an offset encoded inside the genre value."""
    if not genre or GENRE_SKIP_MARKER not in genre:
        return genre, skip
    genre, _, suffix = genre.partition(GENRE_SKIP_MARKER)
    if suffix.startswith("="):
        match = GENRE_SKIP_PATTERN.match(suffix)
        skip = int(match.group(1)) if match else 0
    return genre, skip


class ChannelMetaBuilder:
    """Builds channel meta items (display name, artwork, EPG text)."""

    def __init__(self, epg, settings: Optional[Settings] = None):
        self.epg = epg
        self.settings = settings or get_settings()

    async def artwork(self, channel: Channel) -> tuple[str, str, str]:
        """Poster, background and logo: channel value, EPG icon, placeholder."""
        poster, background, logo = channel.poster, channel.background, channel.logo

        if channel.missing_artwork and channel.tvg_id:
            try:
                icon = await self.epg.get_channel_icon(channel.tvg_id)
            except Exception as e:
                logger.warning(f"EPG icon lookup failed for {channel.tvg_id}: {e}")
                icon = None
            if icon:
                poster = poster or icon
                background = background or icon
                logo = logo or icon

        placeholder = placeholder_image_url(channel.name, self.settings.placeholder_image_base)
        return poster or placeholder, background or placeholder, logo or placeholder

    def display_name(self, channel: Channel, user_config: UserConfig) -> str:
        tag = language_tag(user_config.language, self.settings.default_language)
        name = f"{channel.name} [{tag}]"
        if channel.tvg_chno:
            name = f"{channel.tvg_chno}. {name}"
        return name

    def describe_program(self, current: Program, upcoming: list[Program]) -> str:
        tz = self.settings.epg_timezone
        lines = [f"{LIVE_MARKER}:", current.title]
        if current.description:
            lines.append(current.description)
        lines.append(f"Schedule: {format_time(current.start, tz)} - {format_time(current.stop, tz)}")
        if current.category:
            lines.append(f"Category: {current.category}")

        description = "\n".join(lines)
        if upcoming:
            description += "\n\nUP NEXT:"
            for program in upcoming:
                description += f"\n{format_time(program.start, tz)} - {program.title}"
        return description

    async def enrich_with_epg(self, entry: CatalogEntry, linkage_id: Optional[str],
                              user_config: UserConfig) -> CatalogEntry:
        """Replace the static live text with the current program, if known."""
        if user_config.epg_enabled and linkage_id:
            channel_id = normalize_id(linkage_id)
            try:
                current = await self.epg.get_current_program(channel_id)
                upcoming = await self.epg.get_upcoming_programs(channel_id) if current else []
            except Exception as e:
                logger.warning(f"EPG lookup failed for {channel_id}: {e}")
                current = None
            if current:
                entry.description = self.describe_program(current, upcoming or [])
                entry.releaseInfo = f"{LIVE_MARKER}: {current.title}"
                return entry

        entry.description = f"{STATIC_DESCRIPTION_PREFIX}: {entry.name}"
        entry.releaseInfo = LIVE_RELEASE_INFO
        return entry

    async def catalog_entry(self, channel: Channel, user_config: UserConfig) -> CatalogEntry:
        poster, background, logo = await self.artwork(channel)
        entry = CatalogEntry(
            id=channel.id,
            name=self.display_name(channel, user_config),
            poster=poster,
            background=background,
            logo=logo,
            genre=list(channel.genre),
        )
        return await self.enrich_with_epg(entry, channel.tvg_id, user_config)

    async def stream_meta(self, channel: Channel) -> CatalogEntry:
        """Channel header attached to every stream of a stream response."""
        poster, background, logo = await self.artwork(channel)
        return CatalogEntry(
            id=channel.id,
            name=channel.name,
            poster=poster,
            background=background,
            logo=logo,
            description=channel.description or f"Channel ID: {channel.tvg_id or channel.key}",
            genre=list(channel.genre),
            releaseInfo=LIVE_RELEASE_INFO,
        )


class CatalogQueryEngine:
    """Filters, paginates and enriches the cached channel set."""

    def __init__(self, channels: ChannelCache, epg, settings: Optional[Settings] = None):
        self.channels = channels
        self.settings = settings or get_settings()
        self.meta = ChannelMetaBuilder(epg, self.settings)

    @property
    def page_size(self) -> int:
        return self.settings.catalog_page_size

    def _update_filter(self, search: Optional[str], genre: Optional[str], skip: int):
        if search:
            self.channels.set_last_filter(FilterKind.SEARCH, search)
        elif genre:
            self.channels.set_last_filter(FilterKind.GENRE, genre)
        elif not skip:
            # No filter and no offset: a fresh unfiltered browse
            self.channels.clear_last_filter()

    async def query_catalog(self, request: CatalogRequest, user_config: UserConfig) -> CatalogPage:
        """
        One catalog page.

        Never raises: missing configuration or any failure yields an empty
        page.
        """
        try:
            if not user_config.m3u:
                logger.info("Playlist URL missing from configuration")
                return CatalogPage()

            skip = normalize_skip(request.skip)
            genre, skip = split_genre_skip(request.genre, skip)
            self._update_filter(request.search, genre, skip)

            snapshot = self.channels.snapshot
            filtered = self.channels.get_filtered_channels(snapshot)
            page = filtered[skip:skip + self.page_size]

            metas = await asyncio.gather(
                *(self.meta.catalog_entry(channel, user_config) for channel in page)
            )
            return CatalogPage(metas=list(metas), genres=list(snapshot.genres))
        except Exception as e:
            logger.error(f"Catalog request failed: {e}", exc_info=True)
            return CatalogPage()

    async def get_meta(self, channel_id: str, user_config: UserConfig) -> Optional[CatalogEntry]:
        """Meta item of a single channel, or None."""
        try:
            if not user_config.m3u:
                return None
            channel = self.channels.get_channel(channel_id)
            if channel is None:
                logger.info(f"Channel not found: {channel_id}")
                return None
            return await self.meta.catalog_entry(channel, user_config)
        except Exception as e:
            logger.error(f"Meta request failed for {channel_id}: {e}", exc_info=True)
            return None
