"""
Stream proxy service.
Builds proxied variants of a stream through a MediaFlow-style relay.
"""
import httpx
import logging
import time
from typing import Optional
from urllib.parse import urlencode, urlparse

from omg_tv.config import get_settings
from omg_tv.models.stremio import StreamBehaviorHints, StreamDescriptor, StreamDetails
from omg_tv.models.user_config import UserConfig
from omg_tv.services.display import language_tag

logger = logging.getLogger(__name__)


class StreamProxyManager:
    """Service to wrap stream URLs in proxy URLs."""

    HLS_PATH = "/proxy/hls/manifest.m3u8"
    MPD_PATH = "/proxy/mpd/manifest.m3u8"
    STREAM_PATH = "/proxy/stream"

    # Extensions served as plain byte streams
    DIRECT_EXTENSIONS = (".mp4", ".mkv", ".ts", ".avi")

    def __init__(self, health_check: Optional[bool] = None):
        self.settings = get_settings()
        self.health_check = self.settings.proxy_health_check if health_check is None else health_check
        # proxied url -> (available, checked_at)
        self._health_cache: dict[str, tuple[bool, float]] = {}

    def _proxy_path(self, url: str) -> str:
        """Pick the relay endpoint from the stream URL."""
        path = urlparse(url).path.lower()
        if path.endswith(".mpd"):
            return self.MPD_PATH
        if path.endswith(self.DIRECT_EXTENSIONS):
            return self.STREAM_PATH
        return self.HLS_PATH

    def build_proxy_url(self, details: StreamDetails, user_config: UserConfig) -> str:
        """Compose the relay URL carrying the original URL and headers."""
        base = user_config.proxy.rstrip("/")
        params = {
            "api_password": user_config.proxy_pwd,
            "d": details.url,
        }
        for name, value in details.headers.items():
            params[f"h_{name.lower()}"] = value
        return f"{base}{self._proxy_path(details.url)}?{urlencode(params)}"

    async def _is_available(self, proxy_url: str) -> bool:
        """Probe a proxied URL, caching the answer for a short while."""
        if not self.health_check:
            return True

        cached = self._health_cache.get(proxy_url)
        if cached and time.monotonic() - cached[1] < self.settings.proxy_health_ttl:
            return cached[0]

        available = False
        try:
            async with httpx.AsyncClient(timeout=self.settings.proxy_check_timeout) as client:
                async with client.stream("GET", proxy_url, follow_redirects=True) as response:
                    available = response.status_code < 400
                    if not available:
                        logger.warning(f"Proxy returned status {response.status_code}")
        except httpx.TimeoutException:
            logger.warning("Proxy health check timed out")
        except httpx.HTTPError as e:
            logger.warning(f"Proxy health check failed: {e}")

        self._health_cache[proxy_url] = (available, time.monotonic())
        return available

    async def get_proxy_streams(self, details: StreamDetails, user_config: UserConfig) -> list[StreamDescriptor]:
        """
        Proxied variants of one stream.

        Returns an empty list when the proxy is not configured or does
        not answer.
        """
        if not user_config.proxy_configured:
            return []

        proxy_url = self.build_proxy_url(details, user_config)
        if not await self._is_available(proxy_url):
            logger.warning(f"Proxy unavailable for {details.name}, skipping proxied stream")
            return []

        tag = language_tag(user_config.language, self.settings.default_language)
        return [
            StreamDescriptor(
                name=details.name,
                title=f"🌐 {details.label} [{tag}]",
                url=proxy_url,
                headers={},
                behaviorHints=StreamBehaviorHints(notWebReady=False, bingeGroup="tv"),
            )
        ]

    def clear_health_cache(self):
        self._health_cache.clear()


# Singleton
_proxy_manager: Optional[StreamProxyManager] = None


def get_proxy_manager() -> StreamProxyManager:
    """Get or create proxy manager singleton."""
    global _proxy_manager
    if _proxy_manager is None:
        _proxy_manager = StreamProxyManager()
    return _proxy_manager
