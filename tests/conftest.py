"""
Pytest configuration and fixtures for OMG TV backend tests.
"""
import pytest
from datetime import datetime, timedelta, timezone

from omg_tv.config import Settings
from omg_tv.models.channel import Channel, StreamUrl
from omg_tv.models.epg import Program
from omg_tv.models.stremio import ResolvedStream, StreamDescriptor
from omg_tv.models.user_config import UserConfig
from omg_tv.services.channel_cache import ChannelCache


NOW = datetime(2024, 5, 12, 20, 30, tzinfo=timezone.utc)


class MockEPG:
    """In-memory EPG view keyed by normalized id."""

    def __init__(self, current=None, upcoming=None, icons=None):
        self.current = current or {}
        self.upcoming = upcoming or {}
        self.icons = icons or {}
        self.calls = []

    async def get_current_program(self, channel_id):
        self.calls.append(("current", channel_id))
        return self.current.get(channel_id)

    async def get_upcoming_programs(self, channel_id):
        self.calls.append(("upcoming", channel_id))
        return self.upcoming.get(channel_id, [])

    async def get_channel_icon(self, linkage_id):
        self.calls.append(("icon", linkage_id))
        return self.icons.get(linkage_id.lower())


class MockProxy:
    """Proxy view producing one variant per stream unless told otherwise."""

    def __init__(self, failing=(), unavailable=(), error_on_all=False):
        self.failing = set(failing)
        self.unavailable = set(unavailable)
        self.error_on_all = error_on_all
        self.calls = []

    async def get_proxy_streams(self, details, user_config):
        self.calls.append(details)
        if self.error_on_all or details.url in self.failing:
            raise RuntimeError(f"proxy exploded for {details.url}")
        if not user_config.proxy_configured or details.url in self.unavailable:
            return []
        return [StreamDescriptor(
            name=details.name,
            title=f"🌐 {details.label} [ITA]",
            url=f"{user_config.proxy}/proxy/hls/manifest.m3u8?d={details.url}",
        )]


class MockResolver:
    """Resolver view returning canned candidates or raising."""

    def __init__(self, streams=None, error=None):
        self.streams = streams or []
        self.error = error
        self.calls = []

    async def get_resolved_streams(self, name, urls, user_config):
        self.calls.append((name, urls))
        if self.error:
            raise self.error
        return list(self.streams)


class MockRegenerator:
    def __init__(self, succeed=True, error=None):
        self.succeed = succeed
        self.last_error = error
        self.calls = 0

    async def regenerate(self, user_config):
        self.calls += 1
        return self.succeed

    def get_status(self):
        return {"calls": self.calls, "last_error": self.last_error}


def make_channel(key, name, genre=None, urls=None, **kwargs) -> Channel:
    return Channel(
        id=f"tv|{key}",
        name=name,
        genre=genre or [],
        stream_urls=[StreamUrl(url=u) if isinstance(u, str) else u for u in (urls or [])],
        **kwargs
    )


def make_resolved(url, name="Rai 1", title="Rai 1 HD") -> ResolvedStream:
    return ResolvedStream(name=name, title=title, url=url, headers={"Referer": "https://example.com"})


@pytest.fixture
def settings():
    """Settings with a small page size and no network probes."""
    return Settings(catalog_page_size=3, proxy_health_check=False)


@pytest.fixture
def sample_channels():
    return [
        make_channel("rai1", "Rai 1", ["General"], ["http://example.com/rai1.m3u8"],
                     tvg_id="Rai1.it", tvg_chno=1),
        make_channel("rai2", "Rai 2", ["General"], ["http://example.com/rai2.m3u8"]),
        make_channel("sky", "Sky Sport", ["Sport"], ["http://example.com/sky.m3u8"]),
        make_channel("dazn", "DAZN 1", ["Sport"], ["http://example.com/dazn.m3u8"]),
        make_channel("news", "Rai News 24", ["News"], ["http://example.com/news.m3u8"],
                     poster="http://img/news.png", background="http://img/news-bg.png",
                     logo="http://img/news-logo.png"),
    ]


@pytest.fixture
def channel_cache(sample_channels):
    return ChannelCache(sample_channels)


@pytest.fixture
def live_program():
    return Program(
        channel_id="rai1.it",
        title="Telegiornale",
        description="Evening news",
        start=NOW - timedelta(minutes=30),
        stop=NOW + timedelta(minutes=30),
        category="News",
    )


@pytest.fixture
def upcoming_programs():
    return [
        Program(channel_id="rai1.it", title="Film", start=NOW + timedelta(minutes=30),
                stop=NOW + timedelta(hours=2)),
        Program(channel_id="rai1.it", title="Late Show", start=NOW + timedelta(hours=2),
                stop=NOW + timedelta(hours=3)),
    ]


@pytest.fixture
def user_config():
    return UserConfig(m3u="http://example.com/playlist.m3u")

