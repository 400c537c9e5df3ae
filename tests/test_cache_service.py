"""
Tests for SQLite persistence of channels and EPG data.
"""
import pytest
from datetime import timedelta

from conftest import NOW, make_channel
from omg_tv.models.epg import EPGChannel, Program
from omg_tv.services.cache import CacheService


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test_cache.db")


def program(title, start_offset, minutes=60, channel_id="Rai1.it", **kwargs):
    start = NOW + timedelta(minutes=start_offset)
    return Program(channel_id=channel_id, title=title, start=start,
                   stop=start + timedelta(minutes=minutes), **kwargs)


class TestChannelStorage:

    @pytest.mark.asyncio
    async def test_replace_channels_drops_old_snapshot(self, db_path):
        cache = CacheService(db_path)
        await cache.initialize()

        await cache.replace_channels([make_channel("a", "A"), make_channel("b", "B")])
        await cache.replace_channels([make_channel("c", "C"), make_channel("a", "A2")])

        channels = await cache.get_all_channels()
        assert [(c.id, c.name) for c in channels] == [("tv|c", "C"), ("tv|a", "A2")]


class TestProgramStorage:

    @pytest.mark.asyncio
    async def test_current_and_upcoming(self, db_path):
        cache = CacheService(db_path)
        await cache.initialize()
        count = await cache.store_epg_programs([
            program("Earlier", -120),
            program("Now", -30, description="On air", category="News"),
            program("Next", 30),
            program("Later", 90),
            program("Much Later", 150),
        ])

        current = await cache.get_current_program("rai1.it", NOW)
        upcoming = await cache.get_upcoming_programs("rai1.it", NOW, limit=2)

        assert count == 5
        assert current.title == "Now"
        assert current.description == "On air"
        assert current.start == NOW - timedelta(minutes=30)
        assert [p.title for p in upcoming] == ["Next", "Later"]

    @pytest.mark.asyncio
    async def test_programs_are_upserted(self, db_path):
        cache = CacheService(db_path)
        await cache.initialize()

        await cache.store_epg_programs([program("Now", -30)])
        await cache.store_epg_programs([program("Now", -30, description="Updated")])

        stats = await cache.get_epg_stats()
        current = await cache.get_current_program("rai1.it", NOW)
        assert stats == {"programs": 1, "channels": 1}
        assert current.description == "Updated"

    @pytest.mark.asyncio
    async def test_prune_and_clear(self, db_path):
        cache = CacheService(db_path)
        await cache.initialize()
        await cache.store_epg_programs([program("Old", -300), program("Now", -30)])
        await cache.store_epg_channels([EPGChannel(id="Rai1.it", icon="http://epg/rai1.png")])

        pruned = await cache.prune_programs(NOW)

        assert pruned == 1
        assert await cache.get_epg_icon("rai1.it") == "http://epg/rai1.png"

        await cache.clear_epg()
        assert await cache.get_epg_stats() == {"programs": 0, "channels": 0}
        assert await cache.get_epg_icon("rai1.it") is None
