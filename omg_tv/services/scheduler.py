"""
Periodic update scheduler.

Re-runs the resolver script refresh or the playlist generator at the
interval picked on the configuration page ("HH:MM", or a bare number of
hours). One background task per scheduler; rescheduling replaces it.
"""
import asyncio
import logging
import re
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

INTERVAL_PATTERN = re.compile(r'^(\d{1,3}):([0-5]\d)$')

UpdateJob = Callable[[], Awaitable[bool]]


class ScheduleError(ValueError):
    """The update interval could not be understood."""


def parse_interval(value: Union[str, timedelta, None]) -> Optional[timedelta]:
    """'HH:MM' or whole hours; None for anything else or a zero interval."""
    if isinstance(value, timedelta):
        interval = value
    elif not value:
        return None
    else:
        value = value.strip()
        match = INTERVAL_PATTERN.match(value)
        if match:
            interval = timedelta(hours=int(match.group(1)), minutes=int(match.group(2)))
        elif value.isdigit():
            interval = timedelta(hours=int(value))
        else:
            return None
    return interval if interval.total_seconds() > 0 else None


class UpdateScheduler:
    """Runs one update job every `interval` in a background task."""

    def __init__(self, name: str):
        self.name = name
        self.interval: Optional[timedelta] = None
        self._task: Optional[asyncio.Task] = None
        self._stats = {
            "runs": 0,
            "failures": 0,
            "last_run": None,
            "last_error": None,
        }

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, interval: Union[str, timedelta], job: UpdateJob) -> timedelta:
        """Start (or restart) the periodic job. Raises ScheduleError."""
        delta = parse_interval(interval)
        if delta is None:
            raise ScheduleError(f"Invalid update interval: {interval!r} (expected HH:MM)")

        if self.running:
            self._task.cancel()
        self.interval = delta
        self._task = asyncio.create_task(self._loop(delta, job))
        logger.info(f"⏰ {self.name} updates scheduled every {delta}")
        return delta

    async def stop(self) -> bool:
        """Cancel the periodic job. False when nothing was scheduled."""
        task, self._task = self._task, None
        self.interval = None
        if task is None or task.done():
            return False

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"{self.name} scheduled updates stopped")
        return True

    async def _loop(self, interval: timedelta, job: UpdateJob):
        while True:
            await asyncio.sleep(interval.total_seconds())
            await self.run_once(job)

    async def run_once(self, job: UpdateJob) -> bool:
        """Run the job now; errors are recorded, never raised."""
        self._stats["last_run"] = datetime.now().isoformat()
        try:
            ok = await job()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            ok = False
            self._stats["last_error"] = str(e)
            logger.error(f"❌ Scheduled {self.name} update failed: {e}")
        else:
            self._stats["last_error"] = None if ok else "update reported failure"

        self._stats["runs"] += 1
        if not ok:
            self._stats["failures"] += 1
        return bool(ok)

    def get_status(self) -> dict:
        return {
            **self._stats,
            "name": self.name,
            "running": self.running,
            "interval": str(self.interval) if self.interval else None,
        }


# Singletons
_resolver_scheduler: Optional[UpdateScheduler] = None
_playlist_scheduler: Optional[UpdateScheduler] = None


def get_resolver_scheduler() -> UpdateScheduler:
    """Get or create the resolver script update scheduler."""
    global _resolver_scheduler
    if _resolver_scheduler is None:
        _resolver_scheduler = UpdateScheduler("resolver")
    return _resolver_scheduler


def get_playlist_scheduler() -> UpdateScheduler:
    """Get or create the playlist generator update scheduler."""
    global _playlist_scheduler
    if _playlist_scheduler is None:
        _playlist_scheduler = UpdateScheduler("playlist")
    return _playlist_scheduler


async def stop_all_schedulers():
    for scheduler in (_resolver_scheduler, _playlist_scheduler):
        if scheduler is not None:
            await scheduler.stop()
