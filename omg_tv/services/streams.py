"""
Stream resolution pipeline.

Produces the ordered list of playable streams for a channel from its
declared URLs, the optional resolver script and the optional proxy.

Fallback chain:
    resolver branch (if active) -> original streams branch
Each branch returns a ResolutionOutcome; only SUCCESS stops the chain.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from omg_tv.config import Settings, get_settings
from omg_tv.models.channel import CHANNEL_ID_PREFIX, Channel
from omg_tv.models.stremio import (
    ResolvedStream,
    StreamBehaviorHints,
    StreamDescriptor,
    StreamDetails,
)
from omg_tv.models.user_config import UserConfig
from omg_tv.services.catalog import ChannelMetaBuilder
from omg_tv.services.channel_cache import ChannelCache
from omg_tv.services.display import language_tag

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class ResolutionOutcome:
    kind: OutcomeKind
    streams: list[StreamDescriptor] = field(default_factory=list)
    reason: Optional[str] = None

    @classmethod
    def success(cls, streams: list[StreamDescriptor]) -> "ResolutionOutcome":
        return cls(OutcomeKind.SUCCESS, list(streams))

    @classmethod
    def empty(cls, reason: Optional[str] = None) -> "ResolutionOutcome":
        return cls(OutcomeKind.EMPTY, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "ResolutionOutcome":
        return cls(OutcomeKind.FAILED, reason=reason)

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


class StreamResolutionPipeline:
    """Resolves a channel id into ordered stream descriptors."""

    def __init__(self, channels: ChannelCache, epg, proxy, resolver,
                 regenerator=None, settings: Optional[Settings] = None):
        self.channels = channels
        self.proxy = proxy
        self.resolver = resolver
        self.regenerator = regenerator
        self.settings = settings or get_settings()
        self.meta = ChannelMetaBuilder(epg, self.settings)

    def is_regenerate_request(self, channel_id: str) -> bool:
        return channel_id == f"{CHANNEL_ID_PREFIX}{self.settings.regenerate_channel_id}"

    def original_stream_details(self, channel: Channel) -> list[StreamDetails]:
        """Declared URLs with a default User-Agent filled in."""
        details = []
        for stream in channel.stream_urls:
            headers = dict(stream.headers)
            if not headers.get("User-Agent"):
                headers["User-Agent"] = self.settings.default_user_agent
            details.append(StreamDetails(
                name=channel.name,
                original_name=stream.name,
                url=stream.url,
                headers=headers,
            ))
        return details

    def original_descriptor(self, details: StreamDetails, user_config: UserConfig) -> StreamDescriptor:
        tag = language_tag(user_config.language, self.settings.default_language)
        return StreamDescriptor(
            name=details.name,
            title=f"📺 {details.label} [{tag}]",
            url=details.url,
            headers=details.headers,
            behaviorHints=StreamBehaviorHints(notWebReady=False, bingeGroup="tv"),
        )

    async def _proxy_all(self, details: list[StreamDetails], user_config: UserConfig) -> list[StreamDescriptor]:
        """Proxied variants of every stream, in input order. Propagates errors."""
        results = await asyncio.gather(
            *(self.proxy.get_proxy_streams(d, user_config) for d in details)
        )
        return [stream for variants in results for stream in variants]

    async def resolver_branch(self, channel: Channel, user_config: UserConfig) -> ResolutionOutcome:
        logger.info(f"=== Using resolver for {channel.name} ===")
        try:
            resolved: list[ResolvedStream] = await self.resolver.get_resolved_streams(
                channel.name, channel.stream_urls, user_config
            )
        except Exception as e:
            return ResolutionOutcome.failed(f"resolver error: {e}")

        if not resolved:
            return ResolutionOutcome.empty("resolver returned no streams")

        logger.info(f"✓ Got {len(resolved)} resolved streams")
        proxy_details = [
            StreamDetails(
                name=r.name,
                original_name=r.title,
                url=r.url,
                headers=dict(r.headers),
            )
            for r in resolved
        ]
        resolved_streams = [r.to_descriptor() for r in resolved]

        try:
            if user_config.force_proxy:
                if not user_config.proxy_configured:
                    logger.warning("⚠️ Proxy forced but not configured, using resolved streams")
                    return ResolutionOutcome.success(resolved_streams)

                proxied = await self._proxy_all(proxy_details, user_config)
                if not proxied:
                    logger.warning("⚠️ No working proxy for resolved streams and force_proxy is on")
                return ResolutionOutcome.success(proxied)

            streams = list(resolved_streams)
            if user_config.proxy_configured:
                streams.extend(await self._proxy_all(proxy_details, user_config))
            return ResolutionOutcome.success(streams)
        except Exception as e:
            return ResolutionOutcome.failed(f"proxy error on resolved streams: {e}")

    async def original_branch(self, channel: Channel, user_config: UserConfig) -> ResolutionOutcome:
        details = self.original_stream_details(channel)

        if user_config.force_proxy:
            if not user_config.proxy_configured:
                logger.warning(f"force_proxy without proxy configuration, no streams for {channel.name}")
                return ResolutionOutcome.success([])
            variants = await asyncio.gather(
                *(self.proxy.get_proxy_streams(d, user_config) for d in details),
                return_exceptions=True
            )
            streams = []
            for d, result in zip(details, variants):
                if isinstance(result, Exception):
                    logger.error(f"Proxy failed for {d.url}: {result}")
                    continue
                streams.extend(result)
            return ResolutionOutcome.success(streams)

        variants = [[] for _ in details]
        if user_config.proxy_configured:
            variants = await asyncio.gather(
                *(self.proxy.get_proxy_streams(d, user_config) for d in details),
                return_exceptions=True
            )

        streams = []
        for d, result in zip(details, variants):
            streams.append(self.original_descriptor(d, user_config))
            if isinstance(result, Exception):
                logger.error(f"Proxy failed for {d.url}: {result}")
                continue
            # Proxied variants directly follow their original stream
            streams.extend(result)
        return ResolutionOutcome.success(streams)

    async def _regenerate(self, user_config: UserConfig) -> list[StreamDescriptor]:
        if self.regenerator is None:
            return []

        hints = StreamBehaviorHints(notWebReady=False, bingeGroup="tv")
        if await self.regenerator.regenerate(user_config):
            return [StreamDescriptor(
                name="Completed",
                title="✅ Playlist regenerated successfully!\n Restart the player or go back.",
                url=self.settings.placeholder_video_url,
                behaviorHints=hints,
            )]
        return [StreamDescriptor(
            name="Error",
            title=f"❌ Error: {self.regenerator.last_error or 'Unknown error'}",
            url=self.settings.placeholder_video_url,
            behaviorHints=hints,
        )]

    async def resolve_streams(self, channel_id: str, user_config: UserConfig) -> list[StreamDescriptor]:
        """
        Ordered streams for a channel.

        Never raises: an unknown channel, missing configuration or any
        failure yields an empty list.
        """
        try:
            if not user_config.m3u:
                logger.info("Playlist URL missing from configuration")
                return []

            if self.is_regenerate_request(channel_id):
                return await self._regenerate(user_config)

            channel = self.channels.get_channel(channel_id)
            if channel is None:
                logger.info(f"Channel not found: {channel_id}")
                return []

            outcome = ResolutionOutcome.empty("resolver disabled")
            if user_config.resolver_active:
                outcome = await self.resolver_branch(channel, user_config)
                if not outcome.succeeded:
                    logger.warning(f"⚠️ Falling back to original streams for {channel.name}: {outcome.reason}")

            if not outcome.succeeded:
                outcome = await self.original_branch(channel, user_config)

            meta = await self.meta.stream_meta(channel)
            return [stream.model_copy(update={"meta": meta}) for stream in outcome.streams]
        except Exception as e:
            logger.error(f"Stream request failed for {channel_id}: {e}", exc_info=True)
            return []
