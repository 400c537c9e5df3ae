"""
Tests for the resolver stream manager, using real scripts on disk.
"""
import json
import pytest

from omg_tv.models.channel import StreamUrl
from omg_tv.models.user_config import UserConfig
from omg_tv.services.resolver import ResolverError, ResolverStreamManager
from omg_tv.services.script_runner import run_script

ECHO_RESOLVER = '''
import json, sys

if "--check" in sys.argv:
    sys.exit(0)

request = json.load(sys.stdin)
streams = []
for item in request["urls"]:
    streams.append({"title": item.get("name") or "resolved", "url": item["url"] + "?token=abc",
                    "headers": {"Referer": "https://example.com"}})
streams.append({"title": "broken"})
print(json.dumps({"streams": streams}))
'''

FAILING_RESOLVER = '''
import sys
sys.stderr.write("upstream unavailable")
sys.exit(2)
'''

FIXED_RESOLVER = '''
import json
print(json.dumps([{"url": "http://cdn.example.com/second.m3u8"}]))
'''

SLOW_RESOLVER = '''
import time
time.sleep(5)
'''

URLS = [StreamUrl(url="http://example.com/rai1.m3u8", name="HD")]


def write_script(tmp_path, body, name="resolver.py"):
    path = tmp_path / name
    path.write_text(body)
    return path


def config_for(script) -> UserConfig:
    return UserConfig(m3u="http://example.com/list.m3u", resolver_enabled=True, resolver_script=str(script))


class TestResolverStreamManager:

    @pytest.mark.asyncio
    async def test_resolves_streams(self, tmp_path):
        script = write_script(tmp_path, ECHO_RESOLVER)
        manager = ResolverStreamManager(script_path=str(tmp_path / "cached.py"), timeout=10)

        streams = await manager.get_resolved_streams("Rai 1", URLS, config_for(script))

        assert len(streams) == 1
        assert streams[0].name == "Rai 1"
        assert streams[0].title == "HD"
        assert streams[0].url == "http://example.com/rai1.m3u8?token=abc"
        assert streams[0].headers == {"Referer": "https://example.com"}

    @pytest.mark.asyncio
    async def test_results_are_cached(self, tmp_path):
        script = write_script(tmp_path, ECHO_RESOLVER)
        manager = ResolverStreamManager(script_path=str(tmp_path / "cached.py"), timeout=10)
        config = config_for(script)

        await manager.get_resolved_streams("Rai 1", URLS, config)
        script.write_text(FAILING_RESOLVER)
        cached = await manager.get_resolved_streams("Rai 1", URLS, config)

        assert len(cached) == 1
        assert manager.get_status()["cached_entries"] == 1

        manager.clear_cache()
        with pytest.raises(ResolverError):
            await manager.get_resolved_streams("Rai 1", URLS, config)

    @pytest.mark.asyncio
    async def test_cache_is_per_script(self, tmp_path):
        first = write_script(tmp_path, ECHO_RESOLVER, "first.py")
        second = write_script(tmp_path, FIXED_RESOLVER, "second.py")
        manager = ResolverStreamManager(script_path=str(tmp_path / "cached.py"), timeout=10)

        from_first = await manager.get_resolved_streams("Rai 1", URLS, config_for(first))
        from_second = await manager.get_resolved_streams("Rai 1", URLS, config_for(second))

        assert [s.url for s in from_first] == ["http://example.com/rai1.m3u8?token=abc"]
        assert [s.url for s in from_second] == ["http://cdn.example.com/second.m3u8"]
        assert manager.get_status()["cached_entries"] == 2

    @pytest.mark.asyncio
    async def test_refresh_drops_results_of_that_script(self, tmp_path):
        first = write_script(tmp_path, ECHO_RESOLVER, "first.py")
        second = write_script(tmp_path, FIXED_RESOLVER, "second.py")
        manager = ResolverStreamManager(script_path=str(tmp_path / "cached.py"), timeout=10)
        await manager.get_resolved_streams("Rai 1", URLS, config_for(first))
        await manager.get_resolved_streams("Rai 1", URLS, config_for(second))

        assert await manager.refresh_script(str(first)) is True
        assert manager.get_status()["cached_entries"] == 1
        assert manager.get_status()["last_refresh"] is not None
        assert await manager.refresh_script(str(tmp_path / "nope.py")) is False

    @pytest.mark.asyncio
    async def test_script_failure_raises(self, tmp_path):
        script = write_script(tmp_path, FAILING_RESOLVER)
        manager = ResolverStreamManager(script_path=str(tmp_path / "cached.py"), timeout=10)

        with pytest.raises(ResolverError, match="upstream unavailable"):
            await manager.get_resolved_streams("Rai 1", URLS, config_for(script))
        assert manager.last_error == "upstream unavailable"

    @pytest.mark.asyncio
    async def test_timeout_raises(self, tmp_path):
        script = write_script(tmp_path, SLOW_RESOLVER)
        manager = ResolverStreamManager(script_path=str(tmp_path / "cached.py"), timeout=0.5)

        with pytest.raises(ResolverError, match="timed out"):
            await manager.get_resolved_streams("Rai 1", URLS, config_for(script))

    @pytest.mark.asyncio
    async def test_missing_script(self, tmp_path):
        manager = ResolverStreamManager(script_path=str(tmp_path / "cached.py"))

        with pytest.raises(ResolverError, match="not found"):
            await manager.get_resolved_streams("Rai 1", URLS, config_for(tmp_path / "nope.py"))

    @pytest.mark.asyncio
    async def test_no_script_configured(self, tmp_path):
        manager = ResolverStreamManager(script_path=str(tmp_path / "cached.py"))
        config = UserConfig(m3u="http://example.com/list.m3u", resolver_enabled=True)

        assert await manager.get_resolved_streams("Rai 1", URLS, config) == []

    @pytest.mark.asyncio
    async def test_health_check(self, tmp_path):
        good = write_script(tmp_path, ECHO_RESOLVER, "good.py")
        bad = write_script(tmp_path, FAILING_RESOLVER, "bad.py")
        manager = ResolverStreamManager(script_path=str(tmp_path / "cached.py"), timeout=10)

        assert await manager.check_health(str(good)) is True
        assert await manager.check_health(str(bad)) is False

    def test_parse_output_accepts_bare_list(self):
        manager = ResolverStreamManager()
        output = json.dumps([{"url": "http://cdn/a.m3u8"}, {"name": "no url"}, "junk"])

        streams = manager._parse_output(output, "Rai 1")

        assert [(s.name, s.title, s.url) for s in streams] == [("Rai 1", "Rai 1", "http://cdn/a.m3u8")]

    def test_parse_output_rejects_garbage(self):
        manager = ResolverStreamManager()

        with pytest.raises(ResolverError):
            manager._parse_output("not json", "Rai 1")
        with pytest.raises(ResolverError):
            manager._parse_output('"just a string"', "Rai 1")


@pytest.mark.asyncio
async def test_run_script_passes_stdin(tmp_path):
    import sys

    script = write_script(tmp_path, "import sys\nprint(sys.stdin.read().upper())", "upper.py")

    result = await run_script(sys.executable, script, [], stdin="hello")

    assert result.ok
    assert result.stdout.strip() == "HELLO"
