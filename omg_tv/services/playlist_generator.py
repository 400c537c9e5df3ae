"""
Playlist generator command.
Runs the external generator script and rebuilds the channel cache from the
snapshot it writes.
"""
import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from omg_tv.config import get_settings
from omg_tv.models.user_config import UserConfig
from omg_tv.services.cache import CacheService, get_cache
from omg_tv.services.channel_cache import ChannelCache, get_channel_cache, load_channels_file
from omg_tv.services.script_runner import ScriptError, download_script, run_script

logger = logging.getLogger(__name__)


class PlaylistGeneratorError(Exception):
    """The generator script did not produce a usable snapshot."""


class PlaylistGenerator:
    """Regenerates the channel snapshot on demand."""

    def __init__(self, channel_cache: ChannelCache, cache: CacheService,
                 script_path: Optional[str] = None, output_path: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.settings = get_settings()
        self.channel_cache = channel_cache
        self.cache = cache
        self.script_path = Path(script_path or self.settings.generator_script_path)
        self.output_path = Path(output_path or self.settings.generator_output_path)
        self.timeout = timeout or self.settings.generator_timeout
        self.last_error: Optional[str] = None
        self.last_run: Optional[datetime] = None
        self._lock = asyncio.Lock()

    async def _prepare_script(self, user_config: UserConfig) -> Path:
        if user_config.python_script_url:
            return await download_script(
                user_config.python_script_url, self.script_path, self.settings.download_timeout
            )
        if not self.script_path.exists():
            raise PlaylistGeneratorError(f"Generator script not found: {self.script_path}")
        return self.script_path

    async def _run(self, user_config: UserConfig) -> int:
        script = await self._prepare_script(user_config)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

        result = await run_script(
            self.settings.python_executable, script,
            ["--output", str(self.output_path)],
            timeout=self.timeout
        )
        if not result.ok:
            detail = result.stderr.strip()[-500:] or f"exit code {result.returncode}"
            raise PlaylistGeneratorError(f"Generator failed: {detail}")

        channels = load_channels_file(self.output_path)
        if not channels:
            raise PlaylistGeneratorError("Generator produced an empty channel list")

        await self.channel_cache.replace(channels, self.cache)
        return len(channels)

    async def regenerate(self, user_config: UserConfig) -> bool:
        """Run the generator and rebuild the cache. Failures go to last_error."""
        async with self._lock:
            logger.info("=== Playlist regeneration requested ===")
            self.last_run = datetime.now()
            try:
                count = await self._run(user_config)
            except (PlaylistGeneratorError, ScriptError, OSError, ValueError) as e:
                self.last_error = str(e)
                logger.error(f"❌ Playlist regeneration failed: {e}")
                return False

            self.last_error = None
            logger.info(f"✓ Playlist regenerated with {count} channels")
            return True

    def get_status(self) -> dict:
        return {
            "script_path": str(self.script_path),
            "script_exists": self.script_path.exists(),
            "output_path": str(self.output_path),
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_error": self.last_error,
        }


# Singleton
_playlist_generator: Optional[PlaylistGenerator] = None


async def get_playlist_generator() -> PlaylistGenerator:
    """Get or create playlist generator singleton."""
    global _playlist_generator
    if _playlist_generator is None:
        _playlist_generator = PlaylistGenerator(get_channel_cache(), await get_cache())
    return _playlist_generator
