"""
Resolver stream manager.
Runs the operator's resolver script to turn declared channel URLs into
directly playable stream URLs.
"""
import hashlib
import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from omg_tv.config import get_settings
from omg_tv.models.channel import StreamUrl
from omg_tv.models.stremio import ResolvedStream
from omg_tv.models.user_config import UserConfig
from omg_tv.services.script_runner import ScriptError, download_script, is_remote, run_script

logger = logging.getLogger(__name__)


class ResolverError(Exception):
    """The resolver script failed or produced unusable output."""


class ResolverStreamManager:
    """
    Talks to the resolver script over stdin/stdout.

    Protocol: ``<python> <script> --resolve`` reads
    ``{"name": ..., "urls": [{url, name, headers}]}`` and prints
    ``{"streams": [{name, title, url, headers}]}``.
    """

    def __init__(self, script_path: Optional[str] = None, timeout: Optional[float] = None,
                 cache_ttl: Optional[int] = None):
        self.settings = get_settings()
        self.script_path = Path(script_path or self.settings.resolver_script_path)
        self.timeout = timeout or self.settings.resolver_timeout
        self.cache_ttl = self.settings.resolver_cache_ttl if cache_ttl is None else cache_ttl
        self._script_source: Optional[str] = None
        # (script source, request hash) -> (stored_at, streams)
        self._cache: dict[tuple[str, str], tuple[float, list[ResolvedStream]]] = {}
        self.last_error: Optional[str] = None
        self.last_run: Optional[datetime] = None
        self.last_refresh: Optional[datetime] = None

    async def ensure_script(self, source: str, force: bool = False) -> Path:
        """Local path of the resolver script, downloading it if remote."""
        if is_remote(source):
            if force or source != self._script_source or not self.script_path.exists():
                try:
                    await download_script(source, self.script_path, self.settings.download_timeout)
                except ScriptError as e:
                    self.last_error = str(e)
                    raise ResolverError(str(e)) from e
                self._script_source = source
                self._drop_cached(source)
            return self.script_path

        path = Path(source)
        if not path.exists():
            raise ResolverError(f"Resolver script not found: {source}")
        return path

    @staticmethod
    def _cache_key(source: str, name: str, urls: list[StreamUrl]) -> tuple[str, str]:
        payload = json.dumps(
            {"name": name, "urls": [u.model_dump() for u in urls]},
            sort_keys=True
        )
        return source, hashlib.md5(payload.encode()).hexdigest()

    def _drop_cached(self, source: str):
        for key in [k for k in self._cache if k[0] == source]:
            del self._cache[key]

    def _parse_output(self, output: str, name: str) -> list[ResolvedStream]:
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise ResolverError(f"Resolver returned invalid JSON: {e}") from e

        if isinstance(data, dict):
            data = data.get("streams") or []
        if not isinstance(data, list):
            raise ResolverError("Resolver output must be a list of streams")

        streams = []
        for item in data:
            if not isinstance(item, dict) or not item.get("url"):
                continue
            item = {"name": name, "title": name, **item}
            try:
                streams.append(ResolvedStream.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed resolved stream: {e}")
        return streams

    async def get_resolved_streams(self, name: str, urls: list[StreamUrl],
                                   user_config: UserConfig) -> list[ResolvedStream]:
        """Resolve the declared URLs of a channel. Raises ResolverError."""
        if not user_config.resolver_script:
            return []

        key = self._cache_key(user_config.resolver_script, name, urls)
        cached = self._cache.get(key)
        if cached and time.monotonic() - cached[0] < self.cache_ttl:
            logger.debug(f"Resolver cache hit for {name}")
            return list(cached[1])

        script = await self.ensure_script(user_config.resolver_script)
        request = json.dumps({"name": name, "urls": [u.model_dump() for u in urls]})

        try:
            result = await run_script(
                self.settings.python_executable, script, ["--resolve"],
                stdin=request, timeout=self.timeout
            )
        except ScriptError as e:
            self.last_error = str(e)
            raise ResolverError(str(e)) from e
        finally:
            self.last_run = datetime.now()

        if not result.ok:
            self.last_error = result.stderr.strip()[-500:] or f"exit code {result.returncode}"
            raise ResolverError(f"Resolver failed: {self.last_error}")

        streams = self._parse_output(result.stdout, name)
        self._cache[key] = (time.monotonic(), streams)
        self.last_error = None
        logger.info(f"Resolver returned {len(streams)} streams for {name}")
        return list(streams)

    async def check_health(self, source: str) -> bool:
        """Run the script's self check."""
        try:
            script = await self.ensure_script(source)
            result = await run_script(
                self.settings.python_executable, script, ["--check"], timeout=self.timeout
            )
        except (ResolverError, ScriptError) as e:
            self.last_error = str(e)
            return False
        if not result.ok:
            self.last_error = result.stderr.strip()[-500:] or f"exit code {result.returncode}"
        return result.ok

    async def refresh_script(self, source: str) -> bool:
        """Fetch the script again and forget the results it produced."""
        try:
            await self.ensure_script(source, force=True)
        except ResolverError as e:
            logger.error(f"❌ Resolver script refresh failed: {e}")
            return False
        self._drop_cached(source)
        self.last_refresh = datetime.now()
        logger.info(f"✓ Resolver script refreshed from {source}")
        return True

    def clear_cache(self):
        self._cache.clear()
        logger.info("Resolver cache cleared")

    def get_status(self) -> dict:
        return {
            "script_path": str(self.script_path),
            "script_source": self._script_source,
            "script_exists": self.script_path.exists(),
            "cached_entries": len(self._cache),
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_refresh": self.last_refresh.isoformat() if self.last_refresh else None,
            "last_error": self.last_error,
        }


# Singleton
_resolver_manager: Optional[ResolverStreamManager] = None


def get_resolver_manager() -> ResolverStreamManager:
    """Get or create resolver manager singleton."""
    global _resolver_manager
    if _resolver_manager is None:
        _resolver_manager = ResolverStreamManager()
    return _resolver_manager
