"""
Tests for user configuration decoding.
"""
import base64

from omg_tv.models.user_config import UserConfig


def encode(query: str) -> str:
    return base64.b64encode(query.encode()).decode()


class TestUserConfig:

    def test_decode_flags_and_values(self):
        config = UserConfig.decode(encode(
            "m3u=http%3A%2F%2Fexample.com%2Flist.m3u&epg_enabled=true&force_proxy=false"
            "&proxy=http%3A%2F%2Fproxy.local&proxy_pwd=secret&language=English"
        ))

        assert config.m3u == "http://example.com/list.m3u"
        assert config.epg_enabled is True
        assert config.force_proxy is False
        assert config.proxy_configured
        assert config.language == "English"

    def test_decode_urlsafe_without_padding(self):
        encoded = base64.urlsafe_b64encode(b"m3u=http://a.b/c?d=1&resolver_enabled=1").decode().rstrip("=")

        config = UserConfig.decode(encoded)

        assert config.m3u == "http://a.b/c?d=1"
        assert config.resolver_enabled is True
        assert not config.resolver_active

    def test_garbage_decodes_to_defaults(self):
        assert UserConfig.decode("%%%not-base64%%%") == UserConfig()
        assert UserConfig.decode(base64.b64encode(b"\xff\xfe").decode()) == UserConfig()

    def test_blank_values_are_missing(self):
        config = UserConfig.from_params({"m3u": " ", "proxy": "", "unknown": "x"})

        assert config.m3u is None
        assert config.proxy is None

    def test_encode_round_trip(self):
        config = UserConfig(m3u="http://example.com/list.m3u", epg_enabled=True, language="Italiana")

        assert UserConfig.decode(config.encode()) == config

    def test_resolver_active_needs_script(self):
        assert UserConfig(resolver_enabled=True, resolver_script="http://s/r.py").resolver_active
        assert not UserConfig(resolver_script="http://s/r.py").resolver_active
