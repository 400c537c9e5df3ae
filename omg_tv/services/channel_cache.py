"""
In-memory channel cache.

Requests read an immutable ChannelSnapshot; rebuilds swap the snapshot
reference, so a request that holds a snapshot never sees a partial rebuild.
The cache also owns the deployment-wide catalog filter slot.
"""
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from omg_tv.models.channel import CHANNEL_ID_PREFIX, Channel

logger = logging.getLogger(__name__)


class FilterKind(str, Enum):
    NONE = "none"
    SEARCH = "search"
    GENRE = "genre"


@dataclass(frozen=True)
class FilterState:
    """Last catalog filter, shared by every client of this instance."""
    kind: FilterKind = FilterKind.NONE
    value: Optional[str] = None


@dataclass(frozen=True)
class ChannelSnapshot:
    """One consistent view of the channel set."""
    channels: tuple[Channel, ...] = ()
    genres: tuple[str, ...] = ()
    by_id: dict[str, Channel] = field(default_factory=dict)

    @classmethod
    def build(cls, channels: list[Channel]) -> "ChannelSnapshot":
        by_id: dict[str, Channel] = {}
        genres: dict[str, None] = {}
        unique: list[Channel] = []
        for channel in channels:
            if channel.id in by_id:
                logger.warning(f"Duplicate channel id {channel.id}, keeping first entry")
                continue
            by_id[channel.id] = channel
            unique.append(channel)
            for genre in channel.genre:
                genres.setdefault(genre, None)
        return cls(channels=tuple(unique), genres=tuple(genres), by_id=by_id)

    def lookup(self, channel_id: str) -> Optional[Channel]:
        """Find a channel by full id ('tv|rai1') or bare key ('rai1')."""
        channel = self.by_id.get(channel_id)
        if channel is None and not channel_id.startswith(CHANNEL_ID_PREFIX):
            channel = self.by_id.get(f"{CHANNEL_ID_PREFIX}{channel_id}")
        return channel

    def filter(self, state: FilterState) -> list[Channel]:
        """Apply a catalog filter to this snapshot."""
        if state.kind is FilterKind.SEARCH and state.value:
            term = state.value.lower()
            return [ch for ch in self.channels if term in ch.name.lower()]
        if state.kind is FilterKind.GENRE and state.value:
            return [ch for ch in self.channels if state.value in ch.genre]
        return list(self.channels)


class ChannelCache:
    """Channel cache view used by the catalog engine and stream pipeline."""

    def __init__(self, channels: Optional[list[Channel]] = None):
        self._snapshot = ChannelSnapshot.build(channels or [])
        self._last_filter = FilterState()

    @property
    def snapshot(self) -> ChannelSnapshot:
        return self._snapshot

    @property
    def last_filter(self) -> FilterState:
        return self._last_filter

    def rebuild(self, channels: list[Channel]) -> ChannelSnapshot:
        """Swap in a new channel set."""
        self._snapshot = ChannelSnapshot.build(channels)
        logger.info(
            f"Channel cache rebuilt: {len(self._snapshot.channels)} channels, "
            f"{len(self._snapshot.genres)} genres"
        )
        return self._snapshot

    async def load(self, cache) -> ChannelSnapshot:
        """Load the persisted snapshot from the SQLite cache."""
        return self.rebuild(await cache.get_all_channels())

    async def replace(self, channels: list[Channel], cache) -> ChannelSnapshot:
        """Persist a new snapshot, then serve it."""
        await cache.replace_channels(channels)
        return self.rebuild(channels)

    def get_channel(self, channel_id: str) -> Optional[Channel]:
        return self._snapshot.lookup(channel_id)

    def get_genres(self) -> list[str]:
        return list(self._snapshot.genres)

    def get_filtered_channels(self, snapshot: Optional[ChannelSnapshot] = None) -> list[Channel]:
        """Channels matching the stored filter, read from one snapshot."""
        return (snapshot or self._snapshot).filter(self._last_filter)

    def set_last_filter(self, kind: FilterKind, value: str):
        self._last_filter = FilterState(kind=FilterKind(kind), value=value)

    def clear_last_filter(self):
        self._last_filter = FilterState()


def load_channels_file(path: str | Path) -> list[Channel]:
    """
    Read a channel snapshot written by the playlist generator.

    Accepts a JSON list of channel records or an object with a
    "channels" list.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Channel snapshot not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("channels", [])
    if not isinstance(data, list):
        raise ValueError(f"Channel snapshot must be a list, got {type(data).__name__}")

    return [Channel.model_validate(item) for item in data]


# Singleton
_channel_cache: Optional[ChannelCache] = None


def get_channel_cache() -> ChannelCache:
    """Get or create channel cache singleton."""
    global _channel_cache
    if _channel_cache is None:
        _channel_cache = ChannelCache()
    return _channel_cache
